"""One grid instance: owns every piece of table state and wires them together.

Several grids on one screen never share state; each ``DataGrid`` owns its
own row store, query state, edit session, selection and timers.
"""

from .advanced_search import FilterComposer
from .cell_edit import CellEditor
from .column_order import ColumnOrderController
from .columns import build_columns, data_columns
from .config import COLUMN_ORDER_DEBOUNCE_MS, DEFAULT_PAGE_SIZE, ID_FIELD, SEARCH_DEBOUNCE_MS
from .export import build_export_matrix
from . import field_types as ft
from .notices import NoticeSink
from .page_loader import PageLoader
from .query_state import PAGED, QueryState
from .row_store import RowStore
from .scheduling import Debouncer, ImmediateTimer, SyncRunner
from .selection import BulkActions, SelectionSet

TEMP_ID_PREFIX = "temp-"


class GridHandle:
    """Imperative handle given to host screens.

    Lets a host push server-confirmed results (e.g. from a side-channel
    create flow) into the grid without a full refetch.
    """

    def __init__(self, grid):
        self._grid = grid

    def refresh(self):
        return self._grid.refresh()

    def add_item(self, row):
        return self._grid.add_item(row)

    def update_item(self, row):
        return self._grid.update_item(row)


class DataGrid:
    """Generic data grid over remote collaborators.

    Parameters
    ----------
    columns : list[dict]
        Static column declarations.
    fetch_page : callable
        Required ``fetch_page(query)`` collaborator.
    dynamic_config : dict, optional
        Organization field config ``{"fields": {...}, "fieldOrder": [...]}``.
    mode : str
        ``"paged"`` or ``"lazy"``; fixed for the grid's lifetime.
    create_row, update_row, delete_row, persist_column_order,
    resolve_field_label, confirm : callable, optional
        Optional collaborators; each one missing disables its feature.
    runner : object, optional
        Remote-call runner; defaults to :class:`SyncRunner`.
    timer_factory : callable, optional
        Builds debounce timers; defaults to :class:`ImmediateTimer`, which
        fires at once and so disables the search and column-order debounce.
        Hosts without a Qt event loop that want debouncing must pass a real
        timer factory.
    hidden_columns : iterable of str, optional
        Column ids to hide; kept across column rebuilds.
    notice_timeout_ms : int, optional
        Display timeout stamped on every notice.
    on_notice : callable, optional
        Receives notice payloads.
    on_change : callable, optional
        Called after every row store mutation.
    """

    def __init__(self, columns, fetch_page, *, dynamic_config=None, id_field=None,
                 mode=PAGED, page_size=None, extra_filters=None,
                 create_row=None, update_row=None, delete_row=None,
                 persist_column_order=None, resolve_field_label=None, confirm=None,
                 runner=None, timer_factory=None, on_notice=None, on_change=None,
                 hidden_columns=None, notice_timeout_ms=None):
        self._declarations = list(columns or [])
        self._dynamic_config = dynamic_config
        self._resolve_field_label = resolve_field_label
        self._create_row = create_row
        self._delete_row = delete_row
        self._runner = runner or SyncRunner()
        timer_factory = timer_factory or ImmediateTimer
        self._temp_counter = 0
        self.torn_down = False
        self.hidden_columns = set(hidden_columns or [])

        if notice_timeout_ms is None:
            self.notices = NoticeSink(on_notice)
        else:
            self.notices = NoticeSink(on_notice, timeout_ms=notice_timeout_ms)
        self.columns = self._build_columns()
        self.store = RowStore(id_field or ID_FIELD, on_change=on_change)
        self.state = QueryState(mode, page_size or DEFAULT_PAGE_SIZE, extra_filters)
        self.loader = PageLoader(
            self.store,
            fetch_page,
            self.state,
            self._runner,
            self.notices,
            Debouncer(timer_factory(), SEARCH_DEBOUNCE_MS),
            on_loaded=self._on_loaded,
        )
        self.editor = CellEditor(self.store, self.get_columns, update_row, self._runner, self.notices)
        self.search = FilterComposer(self.get_columns, self.loader.set_advanced_filters)
        self.column_order = ColumnOrderController(
            self.get_columns,
            self._runner,
            self.notices,
            Debouncer(timer_factory(), COLUMN_ORDER_DEBOUNCE_MS),
            persist_column_order,
        )
        self.selection = SelectionSet(self.store)
        self.bulk = BulkActions(
            self.selection,
            self.get_columns,
            self._runner,
            self.notices,
            delete_row=delete_row,
            update_row=update_row,
            confirm=confirm,
            on_refresh=self.refresh,
        )
        self.handle = GridHandle(self)

    # ---- Columns ----

    def get_columns(self):
        return self.columns

    def _build_columns(self):
        columns = build_columns(self._declarations, self._dynamic_config, self._resolve_field_label)
        for column in columns:
            if column["id"] in self.hidden_columns:
                column["hidden"] = True
        return columns

    def set_dynamic_config(self, dynamic_config):
        """Rebuild columns for new organization field definitions."""
        self._dynamic_config = dynamic_config
        self.columns = self._build_columns()
        self.column_order.sync()

    def set_hidden_columns(self, column_ids):
        """Hide ``column_ids`` (declared hidden columns stay hidden)."""
        self.hidden_columns = set(column_ids or [])
        self.columns = self._build_columns()

    def ordered_columns(self):
        return self.column_order.ordered_columns()

    @property
    def can_create(self):
        return self._create_row is not None

    @property
    def can_delete(self):
        return self._delete_row is not None

    # ---- Rows ----

    def visible_rows(self):
        return self.loader.visible_rows(self.columns)

    def display_text(self, row, column):
        return ft.format_display(column, self.editor.cell_value(row, column))

    def _on_loaded(self, rows):
        self.editor.reconcile(rows)

    def refresh(self):
        return self.loader.refresh()

    def add_item(self, row):
        """Insert a server-confirmed row at the top without refetching."""
        if self.store.row_id(row) is None:
            return False
        if self.store.get(self.store.row_id(row)) is not None:
            return self.store.update(row)
        self.store.add(row, index=0)
        return True

    def update_item(self, row):
        """Replace a loaded row with a server-confirmed version."""
        return self.store.update(row)

    def create_row(self, data):
        """Optimistically add a row with a temporary id, then confirm remotely."""
        if self._create_row is None:
            return None
        self._temp_counter += 1
        temp_id = f"{TEMP_ID_PREFIX}{self._temp_counter}"
        optimistic = dict(data or {})
        optimistic[self.store.id_field] = temp_id
        self.store.add(optimistic)
        self._runner.submit(
            self._create_row,
            dict(data or {}),
            lambda outcome: self._on_created(outcome, temp_id),
        )
        return temp_id

    def _on_created(self, outcome, temp_id):
        if not outcome.get("ok"):
            self.store.remove(temp_id)
            self.notices.emit(
                code="create.failed",
                text=f"Failed to create row: {outcome.get('message') or 'unknown error'}",
                level="error",
            )
            return
        result = outcome.get("result")
        created = result.get("data") if isinstance(result, dict) and "data" in result else result
        if isinstance(created, dict) and self.store.row_id(created) is not None:
            self.store.replace_id(temp_id, created)
        else:
            self.refresh()
        self.notices.emit(code="create.done", text="Row created", level="success")

    def delete_row(self, row_id):
        """Optimistically remove a row; it is restored in place if the call fails."""
        if self._delete_row is None:
            return False
        removed = self.store.remove(row_id)
        if removed is None:
            return False
        self.editor.forget_row(row_id)
        index, row = removed
        self._runner.submit(
            self._delete_row,
            row_id,
            lambda outcome: self._on_deleted(outcome, index, row),
        )
        return True

    def _on_deleted(self, outcome, index, row):
        if outcome.get("ok"):
            self.notices.emit(code="delete.done", text="Row deleted", level="success")
            return
        # A refetch that settled meanwhile may have loaded the row again.
        if self.store.get(self.store.row_id(row)) is None:
            self.store.add(row, index=index)
        self.notices.emit(
            code="delete.failed",
            text=f"Failed to delete row: {outcome.get('message') or 'unknown error'}",
            level="error",
        )

    # ---- Export ----

    def export_matrix(self, rows=None):
        """Header/row string matrix of ``rows`` (selection, else visible rows)."""
        if rows is None:
            rows = self.selection.selected_rows() or self.visible_rows()
        columns = [c for c in self.ordered_columns() if c in data_columns(self.columns)]
        return build_export_matrix(columns, rows)

    # ---- Lifecycle ----

    def teardown(self):
        """Stop debounce timers and drop the edit session."""
        self.loader.cancel_timers()
        self.column_order.cancel_timers()
        self.editor.cancel()
        self.torn_down = True
