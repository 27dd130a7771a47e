"""Per-user GUI preferences for grid tables.

Canonical config: ~/.grid_engine/config.yaml
Falls back to defaults if file does not exist.
"""

import copy
import os

import yaml

DEFAULT_CONFIG_DIR = os.path.expanduser("~/.grid_engine")
DEFAULT_CONFIG_FILE = os.path.join(DEFAULT_CONFIG_DIR, "config.yaml")

DEFAULT_GUI_CONFIG = {
    "notice_timeout_ms": 3000,
    "tables": {},
}

DEFAULT_TABLE_PREFS = {
    "page_size": None,
    "hidden_columns": [],
}


def _clean_table_prefs(raw):
    prefs = copy.deepcopy(DEFAULT_TABLE_PREFS)
    if not isinstance(raw, dict):
        return prefs
    try:
        page_size = int(raw.get("page_size"))
        if page_size > 0:
            prefs["page_size"] = page_size
    except (TypeError, ValueError):
        pass
    hidden = raw.get("hidden_columns")
    if isinstance(hidden, list):
        prefs["hidden_columns"] = [str(c) for c in hidden if c]
    return prefs


def load_gui_config(path=DEFAULT_CONFIG_FILE):
    """Load GUI config from YAML file. Returns dict with defaults merged."""
    cfg = copy.deepcopy(DEFAULT_GUI_CONFIG)
    if not os.path.isfile(path):
        return cfg
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except Exception:
        return cfg
    if not isinstance(data, dict):
        return cfg

    try:
        cfg["notice_timeout_ms"] = int(data.get("notice_timeout_ms", cfg["notice_timeout_ms"]))
    except (TypeError, ValueError):
        pass
    tables = data.get("tables")
    if isinstance(tables, dict):
        cfg["tables"] = {str(k): _clean_table_prefs(v) for k, v in tables.items()}
    return cfg


def save_gui_config(config, path=DEFAULT_CONFIG_FILE):
    """Save GUI config to YAML file."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, allow_unicode=True, sort_keys=False)


def get_table_prefs(config, table_id):
    """Preferences for one table (defaults when none are stored)."""
    tables = (config or {}).get("tables") or {}
    return _clean_table_prefs(tables.get(str(table_id)))


def set_table_prefs(config, table_id, **prefs):
    """Update one table's preferences in-place and return them."""
    tables = config.setdefault("tables", {})
    current = _clean_table_prefs(tables.get(str(table_id)))
    current.update({k: v for k, v in prefs.items() if k in DEFAULT_TABLE_PREFS})
    tables[str(table_id)] = _clean_table_prefs(current)
    return tables[str(table_id)]
