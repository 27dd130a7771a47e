import sys
import tempfile
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from grid_gui.gui_config import (
    DEFAULT_GUI_CONFIG,
    get_table_prefs,
    load_gui_config,
    save_gui_config,
    set_table_prefs,
)


class GuiConfigTests(unittest.TestCase):
    def test_load_gui_config_defaults(self):
        with tempfile.TemporaryDirectory(prefix="grid_gui_cfg_") as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            cfg = load_gui_config(path=str(config_path))

        self.assertEqual(DEFAULT_GUI_CONFIG, cfg)
        self.assertIsNot(DEFAULT_GUI_CONFIG["tables"], cfg["tables"])

    def test_load_gui_config_cleans_table_prefs(self):
        with tempfile.TemporaryDirectory(prefix="grid_gui_cfg_dirty_") as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text(
                """notice_timeout_ms: 5000
tables:
  people:
    page_size: "25"
    hidden_columns: [born, ""]
  orders:
    page_size: -4
""",
                encoding="utf-8",
            )
            cfg = load_gui_config(path=str(config_path))

        self.assertEqual(5000, cfg["notice_timeout_ms"])
        self.assertEqual({"page_size": 25, "hidden_columns": ["born"]}, cfg["tables"]["people"])
        self.assertEqual({"page_size": None, "hidden_columns": []}, cfg["tables"]["orders"])

    def test_broken_yaml_falls_back_to_defaults(self):
        with tempfile.TemporaryDirectory(prefix="grid_gui_cfg_bad_") as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text("tables: [unclosed\n", encoding="utf-8")
            cfg = load_gui_config(path=str(config_path))

        self.assertEqual(DEFAULT_GUI_CONFIG, cfg)

    def test_save_and_load_roundtrip_table_prefs(self):
        with tempfile.TemporaryDirectory(prefix="grid_gui_cfg_save_") as temp_dir:
            config_path = Path(temp_dir) / "nested" / "config.yaml"
            cfg = load_gui_config(path=str(config_path))
            set_table_prefs(cfg, "people", page_size=50, hidden_columns=["secret"], bogus=1)
            save_gui_config(cfg, path=str(config_path))
            loaded = load_gui_config(path=str(config_path))

        self.assertEqual({"page_size": 50, "hidden_columns": ["secret"]}, get_table_prefs(loaded, "people"))

    def test_get_table_prefs_for_unknown_table(self):
        self.assertEqual({"page_size": None, "hidden_columns": []}, get_table_prefs({}, "nope"))
        self.assertEqual({"page_size": None, "hidden_columns": []}, get_table_prefs(None, "nope"))


if __name__ == "__main__":
    unittest.main()
