import os
import sys
import time
import unittest
from pathlib import Path


os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

try:
    from PySide6.QtCore import Qt
    from PySide6.QtWidgets import QApplication

    from grid_gui.qt_runtime import QtRemoteRunner, QtTimer
    from grid_gui.table_model import COLUMN_ROLE, ROW_ID_ROLE, GridTableModel, QtDataGrid

    PYSIDE_AVAILABLE = True
except Exception:
    Qt = None
    QApplication = None
    QtRemoteRunner = None
    QtTimer = None
    COLUMN_ROLE = None
    ROW_ID_ROLE = None
    GridTableModel = None
    QtDataGrid = None
    PYSIDE_AVAILABLE = False


COLUMNS = [
    {"id": "select"},
    {"id": "name", "accessor_path": "name", "header": "Name"},
    {"id": "born", "accessor_path": "born", "header": "Born", "field_type": "DATE"},
    {"id": "active", "accessor_path": "active", "header": "Active", "field_type": "CHECKBOX"},
    {"id": "actions"},
]


class _FakeApi:
    def __init__(self):
        self.rows = [
            {"_id": "1", "name": "Dana", "born": "1990-04-01", "active": False},
            {"_id": "2", "name": "Noa", "born": None, "active": True},
        ]
        self.updated = []
        self.queries = []

    def fetch_page(self, query):
        self.queries.append(query)
        return {"rows": list(self.rows), "totalCount": len(self.rows)}

    def update_row(self, payload):
        self.updated.append(payload)
        return {"ok": True}


@unittest.skipUnless(PYSIDE_AVAILABLE, "PySide6 is required for Qt runtime tests")
class QtRuntimeTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._app = QApplication.instance() or QApplication([])

    def _wait(self, predicate, timeout=3.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            self._app.processEvents()
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    def test_remote_runner_delivers_outcome(self):
        runner = QtRemoteRunner()
        outcomes = []
        runner.submit(lambda payload: {"echo": payload}, 7, outcomes.append)
        self.assertTrue(self._wait(lambda: outcomes))
        self.assertEqual([{"ok": True, "result": {"echo": 7}}], outcomes)
        self.assertEqual(0, runner.pending_count())
        runner.shutdown()

    def test_remote_runner_maps_exceptions(self):
        runner = QtRemoteRunner()
        outcomes = []

        def boom(_payload):
            raise RuntimeError("boom")

        runner.submit(boom, None, outcomes.append)
        self.assertTrue(self._wait(lambda: outcomes))
        self.assertFalse(outcomes[0]["ok"])
        self.assertEqual("remote_call_failed", outcomes[0]["error_code"])
        runner.shutdown()

    def test_shutdown_refuses_new_calls(self):
        runner = QtRemoteRunner()
        runner.shutdown()
        self.assertIsNone(runner.submit(lambda payload: payload, 1, None))

    def test_qt_timer_fires_once(self):
        timer = QtTimer()
        fired = []
        timer.start(1, lambda: fired.append(1))
        self.assertTrue(timer.is_active())
        self.assertTrue(self._wait(lambda: fired))
        self._wait(lambda: False, timeout=0.05)
        self.assertEqual([1], fired)

    def test_qt_timer_stop(self):
        timer = QtTimer()
        fired = []
        timer.start(20, lambda: fired.append(1))
        timer.stop()
        self._wait(lambda: False, timeout=0.1)
        self.assertEqual([], fired)


@unittest.skipUnless(PYSIDE_AVAILABLE, "PySide6 is required for Qt model tests")
class GridTableModelTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._app = QApplication.instance() or QApplication([])

    def setUp(self):
        self.api = _FakeApi()
        self.notices = []
        gui_config = {
            "notice_timeout_ms": 4500,
            "tables": {"people": {"page_size": 25, "hidden_columns": ["born"]}},
        }
        self.qt_grid = QtDataGrid(
            COLUMNS,
            self.api.fetch_page,
            table_id="people",
            gui_config=gui_config,
            update_row=self.api.update_row,
        )
        self.qt_grid.notice.connect(self.notices.append)
        self.model = GridTableModel(self.qt_grid)
        self.qt_grid.grid.refresh()
        self.assertTrue(self._wait(lambda: self.model.rowCount() == 2))

    def tearDown(self):
        self.qt_grid.teardown()

    def _wait(self, predicate, timeout=3.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            self._app.processEvents()
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    def _column_index(self, column_id):
        for index in range(self.model.columnCount()):
            if self.model.headerData(index, Qt.Horizontal, COLUMN_ROLE) == column_id:
                return index
        return -1

    def test_table_prefs_applied(self):
        self.assertEqual(25, self.api.queries[-1]["pageSize"])
        self.assertEqual(-1, self._column_index("born"))
        self.assertEqual("Name", self.model.headerData(self._column_index("name"), Qt.Horizontal))

    def test_prefs_survive_column_rebuild(self):
        self.qt_grid.grid.set_dynamic_config({"fields": {"shirt": {"label": "Shirt"}}})
        self.model.reload()
        self.assertEqual(-1, self._column_index("born"))
        self.assertNotEqual(-1, self._column_index("dynamicFields.shirt"))

    def test_notice_timeout_from_gui_config(self):
        self.assertEqual(4500, self.qt_grid.grid.notices.timeout_ms)
        notice = self.qt_grid.grid.notices.emit(code="x", text="y")
        self.assertEqual(4500, notice["timeout_ms"])

    def test_display_and_check_roles(self):
        name_col = self._column_index("name")
        active_col = self._column_index("active")
        self.assertEqual("Dana", self.model.data(self.model.index(0, name_col), Qt.DisplayRole))
        self.assertEqual("1", self.model.data(self.model.index(0, name_col), ROW_ID_ROLE))
        self.assertEqual(Qt.Checked, self.model.data(self.model.index(1, active_col), Qt.CheckStateRole))
        self.assertEqual("", self.model.data(self.model.index(1, active_col), Qt.DisplayRole))

    def test_flags(self):
        name_flags = self.model.flags(self.model.index(0, self._column_index("name")))
        active_flags = self.model.flags(self.model.index(0, self._column_index("active")))
        select_flags = self.model.flags(self.model.index(0, self._column_index("select")))
        self.assertTrue(name_flags & Qt.ItemIsEditable)
        self.assertTrue(active_flags & Qt.ItemIsUserCheckable)
        self.assertFalse(select_flags & Qt.ItemIsEditable)

    def test_set_data_commits_through_editor(self):
        index = self.model.index(0, self._column_index("name"))
        self.assertTrue(self.model.setData(index, "Dana L", Qt.EditRole))
        self.assertEqual("Dana L", self.qt_grid.grid.store.get("1")["name"])
        self.assertTrue(self._wait(lambda: self.api.updated))
        self.assertEqual([{"_id": "1", "name": "Dana L"}], self.api.updated)

    def test_checkbox_toggle(self):
        index = self.model.index(0, self._column_index("active"))
        self.assertTrue(self.model.setData(index, Qt.Checked, Qt.CheckStateRole))
        self._wait(lambda: self.api.updated)
        index = self.model.index(0, self._column_index("active"))
        self.assertEqual(Qt.Checked, self.model.data(index, Qt.CheckStateRole))

    def test_sort_refetches(self):
        before = len(self.api.queries)
        self.model.sort(self._column_index("name"), Qt.DescendingOrder)
        self.assertTrue(self._wait(lambda: len(self.api.queries) > before))
        self.assertEqual("desc", self.api.queries[-1]["sortDirection"])

    def test_paged_model_cannot_fetch_more(self):
        self.assertFalse(self.model.canFetchMore())


if __name__ == "__main__":
    unittest.main()
