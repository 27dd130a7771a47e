"""Qt bindings for a grid instance: owner object and item model."""

from PySide6.QtCore import QAbstractTableModel, QModelIndex, QObject, Qt, Signal

from grid_engine import field_types as ft
from grid_engine.table import DataGrid
from grid_gui.gui_config import get_table_prefs
from grid_gui.qt_runtime import QtRemoteRunner, QtTimer

COLUMN_ROLE = Qt.UserRole + 1
ROW_ID_ROLE = Qt.UserRole + 2


class QtDataGrid(QObject):
    """Owns one :class:`DataGrid` wired to Qt timers and background calls."""

    notice = Signal(object)
    rows_changed = Signal()

    def __init__(self, columns, fetch_page, parent=None, table_id=None, gui_config=None, **options):
        super().__init__(parent)
        self.table_id = table_id
        self.runner = QtRemoteRunner(self)
        prefs = get_table_prefs(gui_config, table_id) if table_id else None
        if prefs and prefs.get("page_size") and not options.get("page_size"):
            options["page_size"] = prefs["page_size"]
        if prefs and prefs.get("hidden_columns") and options.get("hidden_columns") is None:
            options["hidden_columns"] = prefs["hidden_columns"]
        if gui_config and gui_config.get("notice_timeout_ms") is not None:
            options.setdefault("notice_timeout_ms", gui_config["notice_timeout_ms"])
        self.grid = DataGrid(
            columns,
            fetch_page,
            runner=self.runner,
            timer_factory=lambda: QtTimer(self),
            on_notice=self.notice.emit,
            on_change=self.rows_changed.emit,
            **options,
        )

    def teardown(self):
        self.grid.teardown()
        self.runner.shutdown()


class GridTableModel(QAbstractTableModel):
    """Item model over a :class:`QtDataGrid`.

    Display/edit roles go through the field-type registry, ``setData``
    drives the cell edit state machine and ``fetchMore`` drives lazy
    loading.
    """

    def __init__(self, qt_grid, parent=None):
        super().__init__(parent)
        self.qt_grid = qt_grid
        self.grid = qt_grid.grid
        self._rows = []
        self._columns = []
        qt_grid.rows_changed.connect(self.reload)
        self.reload()

    # ---- Structure ----

    def reload(self):
        self.beginResetModel()
        self._columns = [c for c in self.grid.ordered_columns() if not c.get("hidden")]
        self._rows = self.grid.visible_rows()
        self.endResetModel()

    def rowCount(self, parent=QModelIndex()):
        if parent.isValid():
            return 0
        return len(self._rows)

    def columnCount(self, parent=QModelIndex()):
        if parent.isValid():
            return 0
        return len(self._columns)

    def column_at(self, index):
        if 0 <= index < len(self._columns):
            return self._columns[index]
        return None

    def row_at(self, index):
        if 0 <= index < len(self._rows):
            return self._rows[index]
        return None

    def headerData(self, section, orientation, role=Qt.DisplayRole):
        if orientation != Qt.Horizontal:
            return None
        column = self.column_at(section)
        if column is None:
            return None
        if role == Qt.DisplayRole:
            return column["header"]
        if role == COLUMN_ROLE:
            return column["id"]
        return None

    # ---- Cells ----

    def data(self, index, role=Qt.DisplayRole):
        if not index.isValid():
            return None
        row = self.row_at(index.row())
        column = self.column_at(index.column())
        if row is None or column is None:
            return None

        value = self.grid.editor.cell_value(row, column)
        is_checkbox = ft.resolve_field_type(column) == ft.CHECKBOX
        if role == Qt.DisplayRole:
            return "" if is_checkbox else self.grid.display_text(row, column)
        if role == Qt.EditRole:
            return ft.edit_value(column, value)
        if role == Qt.CheckStateRole and is_checkbox:
            return Qt.Checked if ft.coerce_bool(value) else Qt.Unchecked
        if role == ROW_ID_ROLE:
            return self.grid.store.row_id(row)
        if role == COLUMN_ROLE:
            return column["id"]
        return None

    def flags(self, index):
        if not index.isValid():
            return Qt.NoItemFlags
        flags = Qt.ItemIsEnabled | Qt.ItemIsSelectable
        row = self.row_at(index.row())
        column = self.column_at(index.column())
        if row is None or column is None:
            return flags
        allowed, _reason = self.grid.editor.can_edit(self.grid.store.row_id(row), column["id"])
        if allowed:
            if ft.resolve_field_type(column) == ft.CHECKBOX:
                flags |= Qt.ItemIsUserCheckable
            else:
                flags |= Qt.ItemIsEditable
        return flags

    def setData(self, index, value, role=Qt.EditRole):
        if not index.isValid():
            return False
        row = self.row_at(index.row())
        column = self.column_at(index.column())
        if row is None or column is None:
            return False
        row_id = self.grid.store.row_id(row)

        if role == Qt.CheckStateRole:
            return self.grid.editor.toggle_checkbox(row_id, column["id"])
        if role != Qt.EditRole:
            return False
        if not self.grid.editor.begin_edit(row_id, column["id"]):
            return False
        self.grid.editor.set_draft(value)
        return bool(self.grid.editor.commit().get("ok"))

    # ---- Query ----

    def sort(self, column, order=Qt.AscendingOrder):
        target = self.column_at(column)
        if target is None:
            return
        self.grid.loader.set_sorting(target["id"], desc=order == Qt.DescendingOrder)

    def canFetchMore(self, parent=QModelIndex()):
        if parent.isValid():
            return False
        loader = self.grid.loader
        return loader.state.is_lazy and loader.has_more and not loader.is_loading()

    def fetchMore(self, parent=QModelIndex()):
        if parent.isValid():
            return
        self.grid.loader.load_more()

    def set_search_text(self, text):
        self.grid.loader.set_search_text(text)
        self.reload()

    def move_column(self, active_id, over_id):
        """Header drag end. Returns True if the order changed."""
        if not self.grid.column_order.move(active_id, over_id):
            return False
        self.reload()
        return True
