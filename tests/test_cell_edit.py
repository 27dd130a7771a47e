"""Tests for grid_engine.cell_edit.CellEditor."""

import sys
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from grid_engine.cell_edit import COMMITTING, EDITING, VIEWING, CellEditor
from grid_engine.columns import build_columns
from grid_engine.notices import NoticeSink
from grid_engine.row_store import RowStore
from grid_engine.scheduling import DeferredRunner, SyncRunner


COLUMNS = build_columns(
    [
        {"id": "name", "accessor_path": "name", "header": "Name"},
        {"id": "amount", "accessor_path": "amount", "header": "Amount", "field_type": "NUMBER"},
        {"id": "start", "accessor_path": "start", "header": "Start", "field_type": "TIME"},
        {"id": "idNumber", "accessor_path": "idNumber", "header": "ID"},
        {"id": "active", "accessor_path": "active", "header": "Active", "field_type": "CHECKBOX"},
        {"id": "locked", "accessor_path": "locked", "header": "Locked", "editable": False},
        {"id": "actions"},
    ],
    {"fields": {"shirt": {"label": "Shirt", "type": "TEXT"}, "vip": {"label": "VIP", "type": "CHECKBOX"}}},
)


class RecordingBackend:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def update_row(self, payload):
        self.calls.append(payload)
        if self.fail:
            return {"ok": False, "message": "server said no"}
        return {"ok": True, "data": payload}


def _editor(rows=None, runner=None, backend=None, read_only=False):
    backend = backend or RecordingBackend()
    store = RowStore()
    store.replace_all(rows if rows is not None else [{"_id": "1", "name": "Dana", "amount": 10, "active": False}])
    notices = NoticeSink()
    editor = CellEditor(
        store,
        lambda: COLUMNS,
        None if read_only else backend.update_row,
        runner or SyncRunner(),
        notices,
    )
    return editor, store, backend, notices


class OptimisticCommitTests(unittest.TestCase):
    def test_rollback_after_remote_rejection(self):
        runner = DeferredRunner()
        editor, store, backend, notices = _editor(runner=runner, backend=RecordingBackend(fail=True))

        self.assertTrue(editor.begin_edit("1", "amount"))
        editor.set_draft("20")
        result = editor.commit()
        self.assertTrue(result["ok"])

        # Optimistic value is visible and the cell is back to viewing.
        self.assertEqual(20, store.get("1")["amount"])
        self.assertEqual(VIEWING, editor.cell_state("1", "amount"))
        self.assertTrue(editor.is_in_flight("1", "amount"))

        runner.run_pending()
        self.assertEqual(10, store.get("1")["amount"])
        self.assertFalse(editor.is_in_flight("1", "amount"))
        self.assertEqual("edit.failed", notices.last()["code"])
        self.assertIn("server said no", notices.last()["text"])

    def test_success_keeps_value_and_sends_partial_payload(self):
        editor, store, backend, notices = _editor()
        editor.begin_edit("1", "name")
        editor.set_draft("Noa")
        editor.commit()
        self.assertEqual("Noa", store.get("1")["name"])
        self.assertEqual([{"_id": "1", "name": "Noa"}], backend.calls)
        self.assertEqual([], notices.history)

    def test_rollback_restores_only_edited_field(self):
        runner = DeferredRunner()
        editor, store, _backend, _notices = _editor(runner=runner, backend=RecordingBackend(fail=True))
        editor.begin_edit("1", "amount")
        editor.set_draft("20")
        editor.commit()
        # A concurrent server-confirmed update to another field survives rollback.
        row = store.get("1")
        row["name"] = "Renamed"
        store.update(row)
        runner.run_pending()
        self.assertEqual({"_id": "1", "name": "Renamed", "amount": 10, "active": False}, store.get("1"))

    def test_rollback_of_previously_missing_field(self):
        runner = DeferredRunner()
        editor, store, _backend, _notices = _editor(
            rows=[{"_id": "1"}], runner=runner, backend=RecordingBackend(fail=True)
        )
        editor.begin_edit("1", "name")
        editor.set_draft("Dana")
        editor.commit()
        self.assertEqual("Dana", store.get("1")["name"])
        runner.run_pending()
        self.assertNotIn("name", store.get("1"))


class ValidationTests(unittest.TestCase):
    def test_rejected_time_makes_no_call(self):
        editor, store, backend, notices = _editor()
        editor.begin_edit("1", "start")
        editor.set_draft("99:99")
        result = editor.commit()
        self.assertFalse(result["ok"])
        self.assertEqual([], backend.calls)
        self.assertNotIn("start", store.get("1"))
        self.assertIsNone(editor.session)
        self.assertEqual("edit.time_invalid", notices.last()["code"])
        self.assertEqual("warning", notices.last()["level"])

    def test_bad_id_number_clears_input(self):
        editor, _store, backend, _notices = _editor()
        editor.begin_edit("1", "idNumber")
        editor.set_draft("123456789")
        result = editor.commit()
        self.assertEqual("id_number_invalid", result["error_code"])
        self.assertTrue(result["clear_input"])
        self.assertEqual([], backend.calls)

    def test_commit_without_session(self):
        editor, _store, _backend, _notices = _editor()
        self.assertEqual("no_session", editor.commit()["error_code"])


class SessionTests(unittest.TestCase):
    def test_single_active_session(self):
        editor, _store, backend, _notices = _editor()
        self.assertTrue(editor.begin_edit("1", "name"))
        self.assertEqual(EDITING, editor.cell_state("1", "name"))
        editor.set_draft("changed")

        self.assertTrue(editor.begin_edit("1", "amount"))
        self.assertEqual(VIEWING, editor.cell_state("1", "name"))
        self.assertEqual(EDITING, editor.cell_state("1", "amount"))
        self.assertEqual("10", editor.session["draft"])
        self.assertEqual([], backend.calls)

    def test_refused_edit_keeps_current_session(self):
        editor, _store, _backend, _notices = _editor()
        editor.begin_edit("1", "name")
        self.assertFalse(editor.begin_edit("1", "locked"))
        self.assertEqual(EDITING, editor.cell_state("1", "name"))

    def test_cancel(self):
        editor, store, backend, _notices = _editor()
        editor.begin_edit("1", "name")
        editor.set_draft("zzz")
        self.assertTrue(editor.cancel())
        self.assertFalse(editor.cancel())
        self.assertEqual("Dana", store.get("1")["name"])
        self.assertEqual([], backend.calls)

    def test_in_flight_cell_refuses_edit(self):
        runner = DeferredRunner()
        editor, _store, _backend, _notices = _editor(runner=runner)
        editor.begin_edit("1", "amount")
        editor.set_draft("30")
        editor.commit()

        self.assertEqual((False, "commit_in_flight"), editor.can_edit("1", "amount"))
        self.assertFalse(editor.begin_edit("1", "amount"))
        self.assertTrue(editor.begin_edit("1", "name"))
        editor.cancel()

        runner.run_pending()
        self.assertEqual((True, ""), editor.can_edit("1", "amount"))

    def test_read_only_without_update_row(self):
        editor, _store, _backend, _notices = _editor(read_only=True)
        self.assertEqual((False, "read_only"), editor.can_edit("1", "name"))
        self.assertFalse(editor.begin_edit("1", "name"))
        self.assertFalse(editor.toggle_checkbox("1", "active"))

    def test_not_editable_columns(self):
        editor, _store, _backend, _notices = _editor()
        self.assertEqual((False, "not_editable"), editor.can_edit("1", "locked"))
        self.assertEqual((False, "not_editable"), editor.can_edit("1", "actions"))
        self.assertEqual((False, "unknown_row"), editor.can_edit("nope", "name"))
        self.assertEqual((False, "unknown_column"), editor.can_edit("1", "nope"))

    def test_checkbox_never_enters_editing(self):
        editor, _store, _backend, _notices = _editor()
        self.assertFalse(editor.begin_edit("1", "active"))

    def test_committing_state_is_transient(self):
        editor, _store, _backend, _notices = _editor()
        editor.begin_edit("1", "name")
        self.assertNotEqual(COMMITTING, editor.cell_state("1", "name"))
        editor.commit()
        self.assertEqual(VIEWING, editor.cell_state("1", "name"))


class DynamicFieldEditTests(unittest.TestCase):
    def test_commit_merges_into_dynamic_fields(self):
        rows = [{"_id": "1", "dynamicFields": {"shirt": "M", "vip": True}}]
        editor, store, backend, _notices = _editor(rows=rows)
        editor.begin_edit("1", "dynamicFields.shirt")
        editor.set_draft("L")
        editor.commit()
        self.assertEqual({"shirt": "L", "vip": True}, store.get("1")["dynamicFields"])
        self.assertEqual([{"_id": "1", "dynamicFields": {"shirt": "L", "vip": True}}], backend.calls)


class CheckboxTests(unittest.TestCase):
    def test_toggle_override_survives_stale_refetch(self):
        runner = DeferredRunner()
        editor, store, backend, _notices = _editor(runner=runner)
        column = next(c for c in COLUMNS if c["id"] == "active")

        self.assertTrue(editor.toggle_checkbox("1", "active"))
        self.assertTrue(store.get("1")["active"])
        runner.run_pending()
        self.assertEqual([{"_id": "1", "active": True}], backend.calls)

        # A refetch that has not caught up yet must not flip the box back.
        stale = {"_id": "1", "name": "Dana", "amount": 10, "active": False}
        store.replace_all([stale])
        self.assertEqual(0, editor.reconcile([stale]))
        self.assertTrue(editor.cell_value(store.get("1"), column))

        fresh = dict(stale, active=True)
        store.replace_all([fresh])
        self.assertEqual(1, editor.reconcile([fresh]))
        self.assertIsNone(editor.override_for("1", "active"))

    def test_failed_toggle_clears_override_and_rolls_back(self):
        editor, store, _backend, notices = _editor(backend=RecordingBackend(fail=True))
        column = next(c for c in COLUMNS if c["id"] == "active")
        editor.toggle_checkbox("1", "active")
        self.assertFalse(store.get("1")["active"])
        self.assertFalse(editor.cell_value(store.get("1"), column))
        self.assertEqual("edit.failed", notices.last()["code"])

    def test_toggle_dynamic_checkbox(self):
        rows = [{"_id": "1", "dynamicFields": {"shirt": "M", "vip": "false"}}]
        editor, store, backend, _notices = _editor(rows=rows)
        editor.toggle_checkbox("1", "dynamicFields.vip")
        self.assertEqual({"shirt": "M", "vip": True}, store.get("1")["dynamicFields"])
        self.assertEqual({"shirt": "M", "vip": True}, backend.calls[0]["dynamicFields"])

    def test_forget_row_drops_overrides(self):
        runner = DeferredRunner()
        editor, _store, _backend, _notices = _editor(runner=runner)
        editor.toggle_checkbox("1", "active")
        editor.forget_row("1")
        self.assertIsNone(editor.override_for("1", "active"))


if __name__ == "__main__":
    unittest.main()
