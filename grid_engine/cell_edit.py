"""Per-cell edit state machine with optimistic commits.

States of a cell::

    viewing -> editing -> committing -> viewing
                       \\-> cancelled -> viewing

At most one cell per grid is ``editing``.  A commit applies the normalized
value to the row store first, returns the cell to ``viewing`` and only then
calls the remote ``update_row`` collaborator; a rejected call restores the
edited field from the pre-edit snapshot.

Checkbox cells skip ``editing``: a toggle commits immediately and records an
optimistic override that survives refetches until the server reports the
same value.
"""

import copy

from . import field_types as ft
from .columns import commit_payload, find_column, get_value, is_control_column, with_value

VIEWING = "viewing"
EDITING = "editing"
COMMITTING = "committing"

_MISSING = object()


def _without_value(row, accessor_path):
    """Copy of ``row`` with ``accessor_path`` removed."""
    updated = dict(row or {})
    head, _, leaf = str(accessor_path).partition(".")
    if not leaf:
        updated.pop(head, None)
        return updated
    nested = updated.get(head)
    if isinstance(nested, dict):
        nested = dict(nested)
        nested.pop(leaf, None)
        updated[head] = nested
    return updated


def _read_snapshot(row, accessor_path):
    head, _, leaf = str(accessor_path).partition(".")
    if not leaf:
        return copy.deepcopy(row[head]) if head in row else _MISSING
    nested = row.get(head)
    if isinstance(nested, dict) and leaf in nested:
        return copy.deepcopy(nested[leaf])
    return _MISSING


class CellEditor:
    """Edit sessions and optimistic commits for one grid instance.

    Parameters
    ----------
    store : RowStore
    columns_getter : callable
        Returns the current column descriptors.
    update_row : callable or None
        Remote collaborator; ``None`` renders every cell read-only.
    runner : object
        Remote-call runner (see ``grid_engine.scheduling``).
    notices : NoticeSink
    """

    def __init__(self, store, columns_getter, update_row, runner, notices):
        self.store = store
        self._columns_getter = columns_getter
        self._update_row = update_row
        self._runner = runner
        self._notices = notices
        self.session = None
        self._in_flight = set()
        self._overrides = {}

    # ---- Read ----

    def _column(self, column_id):
        return find_column(self._columns_getter(), column_id)

    def cell_state(self, row_id, column_id):
        column = self._column(column_id)
        if column is None:
            return VIEWING
        key = (row_id, column["accessor_path"])
        if self.session and (self.session["row_id"], self.session["accessor_path"]) == key:
            return self.session["state"]
        return VIEWING

    def is_in_flight(self, row_id, accessor_path):
        return (row_id, accessor_path) in self._in_flight

    def pending_count(self):
        return len(self._in_flight)

    def override_for(self, row_id, accessor_path, default=None):
        return self._overrides.get((row_id, accessor_path), default)

    def cell_value(self, row, column):
        """Raw value to render, honouring optimistic checkbox overrides."""
        row_id = self.store.row_id(row)
        key = (row_id, column["accessor_path"])
        if key in self._overrides:
            return self._overrides[key]
        return get_value(row, column["accessor_path"])

    def can_edit(self, row_id, column_id):
        """Return ``(allowed, reason)`` for an edit intent on a cell."""
        if self._update_row is None:
            return False, "read_only"
        column = self._column(column_id)
        if column is None:
            return False, "unknown_column"
        if is_control_column(column) or column.get("hidden") or not column.get("editable"):
            return False, "not_editable"
        if row_id is None or self.store.get(row_id) is None:
            return False, "unknown_row"
        if self.is_in_flight(row_id, column["accessor_path"]):
            return False, "commit_in_flight"
        return True, ""

    # ---- Transitions ----

    def begin_edit(self, row_id, column_id):
        """Enter ``editing`` on a cell. Returns True if the session started.

        Any other open session is cancelled without committing.  Checkbox
        cells never enter ``editing``; use :meth:`toggle_checkbox`.
        """
        allowed, _reason = self.can_edit(row_id, column_id)
        column = self._column(column_id)
        if not allowed or ft.resolve_field_type(column) == ft.CHECKBOX:
            return False

        if self.session is not None:
            self.cancel()

        row = self.store.get(row_id)
        raw = self.cell_value(row, column)
        self.session = {
            "row_id": row_id,
            "column_id": column["id"],
            "accessor_path": column["accessor_path"],
            "state": EDITING,
            "original": copy.deepcopy(raw),
            "draft": ft.edit_value(column, raw),
            "widget": ft.edit_widget(column),
        }
        return True

    def set_draft(self, value):
        if self.session is None or self.session["state"] != EDITING:
            return False
        self.session["draft"] = value
        return True

    def cancel(self):
        """Drop the open session without committing. Returns True if one was open."""
        if self.session is None:
            return False
        self.session = None
        return True

    def commit(self):
        """Commit the open session. Returns the normalization result dict."""
        session = self.session
        if session is None or session["state"] != EDITING:
            return {"ok": False, "error_code": "no_session", "message": "No cell is being edited", "clear_input": False}

        column = self._column(session["column_id"])
        session["state"] = COMMITTING
        result = ft.normalize_commit(column, session["draft"])
        if not result["ok"]:
            if result.get("clear_input"):
                session["draft"] = ""
            self.session = None
            self._notices.emit(
                code=f"edit.{result['error_code']}",
                text=result["message"],
                level="warning",
            )
            return result

        row = self.store.get(session["row_id"])
        if row is None:
            self.session = None
            return {"ok": False, "error_code": "unknown_row", "message": "Row is no longer loaded", "clear_input": False}

        self.session = None
        self._apply(row, column, result["value"])
        return result

    def toggle_checkbox(self, row_id, column_id):
        """Flip a checkbox cell and commit it immediately."""
        allowed, _reason = self.can_edit(row_id, column_id)
        column = self._column(column_id)
        if not allowed or ft.resolve_field_type(column) != ft.CHECKBOX:
            return False

        if self.session is not None:
            self.cancel()

        row = self.store.get(row_id)
        value = not ft.coerce_bool(self.cell_value(row, column))
        self._overrides[(row_id, column["accessor_path"])] = value
        self._apply(row, column, value)
        return True

    def _apply(self, row, column, value):
        row_id = self.store.row_id(row)
        path = column["accessor_path"]
        key = (row_id, path)
        previous = _read_snapshot(row, path)

        self.store.update(with_value(row, path, value))
        self._in_flight.add(key)
        payload = commit_payload(row, path, value, self.store.id_field)
        self._runner.submit(
            self._update_row,
            payload,
            lambda outcome: self._on_committed(outcome, key, previous, column),
        )

    def _on_committed(self, outcome, key, previous, column):
        self._in_flight.discard(key)
        if outcome.get("ok"):
            return

        row_id, path = key
        self._overrides.pop(key, None)
        current = self.store.get(row_id)
        if current is not None:
            if previous is _MISSING:
                self.store.update(_without_value(current, path))
            else:
                self.store.update(with_value(current, path, previous))
        self._notices.emit(
            code="edit.failed",
            text=f"Failed to save {column.get('header') or path}: {outcome.get('message') or 'unknown error'}",
            level="error",
            data={"row_id": row_id, "accessor_path": path},
        )

    # ---- Reconciliation ----

    def reconcile(self, rows):
        """Clear checkbox overrides that fetched rows now confirm."""
        if not self._overrides:
            return 0
        by_id = {self.store.row_id(r): r for r in rows or [] if isinstance(r, dict)}
        cleared = 0
        for key in list(self._overrides):
            row_id, path = key
            if key in self._in_flight:
                continue
            row = by_id.get(row_id)
            if row is None:
                continue
            if ft.coerce_bool(get_value(row, path)) == self._overrides[key]:
                del self._overrides[key]
                cleared += 1
        return cleared

    def forget_row(self, row_id):
        """Drop session/overrides tied to a removed row."""
        if self.session and self.session["row_id"] == row_id:
            self.session = None
        for key in [k for k in self._overrides if k[0] == row_id]:
            del self._overrides[key]
