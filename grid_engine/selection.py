"""Row selection and bulk actions (delete, field update) over selected rows."""

from . import field_types as ft
from .columns import commit_payload, find_column, is_control_column


class SelectionSet:
    """Selected row ids, scoped to the rows currently loaded in ``store``.

    Entries whose row has left the store are orphans: they stay in the map
    but are never surfaced.
    """

    def __init__(self, store):
        self.store = store
        self._selected = {}

    def set_selected(self, row_id, selected=True):
        if row_id is None:
            return False
        if selected:
            self._selected[row_id] = True
        else:
            self._selected.pop(row_id, None)
        return True

    def toggle(self, row_id):
        return self.set_selected(row_id, not self._selected.get(row_id, False))

    def select_all_loaded(self):
        for row_id in self.store.ids():
            if row_id is not None:
                self._selected[row_id] = True

    def clear(self):
        self._selected = {}

    def is_selected(self, row_id):
        return bool(self._selected.get(row_id)) and self.store.index_of(row_id) >= 0

    def selected_ids(self):
        """Selected ids still present in the store, in store order."""
        return [row_id for row_id in self.store.ids() if self._selected.get(row_id)]

    def selected_rows(self):
        by_id = {self.store.row_id(r): r for r in self.store.list_rows()}
        return [by_id[row_id] for row_id in self.selected_ids() if row_id in by_id]

    def count(self):
        return len(self.selected_ids())

    def prune(self):
        """Forget orphaned entries. Returns how many were dropped."""
        live = set(self.store.ids())
        orphans = [row_id for row_id in self._selected if row_id not in live]
        for row_id in orphans:
            del self._selected[row_id]
        return len(orphans)


class _FanOut:
    """All-or-nothing completion tracking for N concurrent remote calls."""

    def __init__(self, total, on_success, on_failure, on_settled=None):
        self.total = total
        self.settled = 0
        self.succeeded = 0
        self.failed = False
        self._on_success = on_success
        self._on_failure = on_failure
        self._on_settled = on_settled

    def done(self, outcome):
        self.settled += 1
        if not self.failed:
            if outcome.get("ok"):
                self.succeeded += 1
                if self.succeeded == self.total:
                    self._on_success()
            else:
                self.failed = True
                self._on_failure(outcome)
        if self.settled == self.total and self._on_settled:
            self._on_settled()


class BulkActions:
    """Bulk delete / bulk field update over the selection.

    Parameters
    ----------
    selection : SelectionSet
    columns_getter : callable
    runner : object
        Remote-call runner (see ``grid_engine.scheduling``).
    notices : NoticeSink
    delete_row, update_row : callable, optional
        Per-row remote collaborators.
    confirm : callable, optional
        ``confirm(request) -> bool``; bulk delete runs only when it returns
        True.
    on_refresh : callable, optional
        Requests a full refetch after a successful batch.
    """

    def __init__(self, selection, columns_getter, runner, notices,
                 delete_row=None, update_row=None, confirm=None, on_refresh=None):
        self.selection = selection
        self._columns_getter = columns_getter
        self._runner = runner
        self._notices = notices
        self._delete_row = delete_row
        self._update_row = update_row
        self._confirm = confirm
        self._on_refresh = on_refresh
        self.running = None

    def updatable_fields(self):
        """Columns a bulk update may target."""
        return [
            c for c in self._columns_getter()
            if c.get("accessor_path") and c.get("editable")
            and not c.get("hidden") and not is_control_column(c)
        ]

    def _finish_success(self, code, text):
        self.selection.clear()
        self._notices.emit(code=code, text=text, level="success")
        if self._on_refresh:
            self._on_refresh()

    def _finish_failure(self, code, text, outcome):
        self._notices.emit(
            code=code,
            text=f"{text}: {outcome.get('message') or 'unknown error'}",
            level="error",
        )

    def _settled(self):
        self.running = None

    def _fan_out(self, fn, payloads, name, success_text, failure_text):
        self.running = name
        tracker = _FanOut(
            len(payloads),
            lambda: self._finish_success(f"bulk_{name}.done", success_text),
            lambda outcome: self._finish_failure(f"bulk_{name}.failed", failure_text, outcome),
            self._settled,
        )
        for payload in payloads:
            self._runner.submit(fn, payload, tracker.done)
        return True

    def bulk_delete(self):
        """Delete every selected row after confirmation. Returns True if issued."""
        if self._delete_row is None or self.running:
            return False
        ids = self.selection.selected_ids()
        if not ids:
            self._notices.emit(code="bulk_delete.empty", text="Select rows first", level="warning")
            return False
        request = {"action": "delete", "count": len(ids), "ids": list(ids)}
        if self._confirm is None or not self._confirm(request):
            return False
        return self._fan_out(
            self._delete_row,
            ids,
            "delete",
            f"Deleted {len(ids)} row(s)",
            "Bulk delete failed",
        )

    def bulk_update(self, accessor_path, value):
        """Apply one field value to every selected row. Returns True if issued."""
        if self._update_row is None or self.running:
            return False
        column = find_column(self.updatable_fields(), accessor_path)
        if column is None:
            self._notices.emit(code="bulk_update.bad_field", text=f"Field cannot be updated: {accessor_path}", level="warning")
            return False
        rows = self.selection.selected_rows()
        if not rows:
            self._notices.emit(code="bulk_update.empty", text="Select rows first", level="warning")
            return False

        result = ft.normalize_commit(column, value)
        if not result["ok"]:
            self._notices.emit(code=f"bulk_update.{result['error_code']}", text=result["message"], level="warning")
            return False

        id_field = self.selection.store.id_field
        payloads = [
            commit_payload(row, column["accessor_path"], result["value"], id_field)
            for row in rows
        ]
        return self._fan_out(
            self._update_row,
            payloads,
            "update",
            f"Updated {len(payloads)} row(s)",
            "Bulk update failed",
        )
