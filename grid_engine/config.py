"""Runtime configuration for the data-grid engine.

Configuration precedence:
1) Built-in defaults in this file
2) JSON file from environment variable ``GRID_ENGINE_CONFIG_FILE``
"""

import copy
import json
import os
import sys


CONFIG_ENV_VAR = "GRID_ENGINE_CONFIG_FILE"


DEFAULT_CONFIG = {
    "id_field": "_id",
    "paging": {
        "default_page_size": 10,
        "lazy_load_threshold_px": 200,
    },
    "timing": {
        "search_debounce_ms": 400,
        "column_order_debounce_ms": 500,
    },
    "display": {
        "currency_symbol": "₪",
        "date_format": "%d/%m/%Y",
        "commit_date_format": "%Y-%m-%d",
    },
}


def _merge_dict(base, override):
    """Recursively merge ``override`` into ``base`` in-place."""
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def _load_external_config():
    """Load user config JSON from GRID_ENGINE_CONFIG_FILE if provided."""
    config_path = os.environ.get(CONFIG_ENV_VAR)
    if not config_path:
        return {}

    abs_path = os.path.abspath(os.path.expanduser(config_path))

    try:
        with open(abs_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as exc:
        print(
            f"warning: failed to load {CONFIG_ENV_VAR}={abs_path}: {exc}",
            file=sys.stderr,
        )
        return {}

    if not isinstance(payload, dict):
        print(
            f"warning: {CONFIG_ENV_VAR} must point to a JSON object: {abs_path}",
            file=sys.stderr,
        )
        return {}

    return payload


def build_runtime_config(external=None):
    """Return defaults merged with ``external`` (or the env-var file)."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    if external is None:
        external = _load_external_config()
    _merge_dict(config, external)
    return config


RUNTIME_CONFIG = build_runtime_config()


def get_runtime_config():
    """Return a copy of resolved runtime configuration."""
    return copy.deepcopy(RUNTIME_CONFIG)


def _warn_bad_value(name, value, fallback):
    print(
        f"warning: invalid config value for {name}={value!r}; using {fallback!r}",
        file=sys.stderr,
    )


def _as_positive_int(name, value, fallback):
    try:
        number = int(value)
    except Exception:
        _warn_bad_value(name, value, fallback)
        return int(fallback)
    if number <= 0:
        _warn_bad_value(name, value, fallback)
        return int(fallback)
    return number


def _as_str(name, value, fallback):
    if isinstance(value, str) and value:
        return value
    _warn_bad_value(name, value, fallback)
    return str(fallback)


ID_FIELD = _as_str("id_field", RUNTIME_CONFIG.get("id_field"), DEFAULT_CONFIG["id_field"])

# Paging
DEFAULT_PAGE_SIZE = _as_positive_int(
    "paging.default_page_size",
    RUNTIME_CONFIG["paging"].get("default_page_size"),
    DEFAULT_CONFIG["paging"]["default_page_size"],
)
LAZY_LOAD_THRESHOLD_PX = _as_positive_int(
    "paging.lazy_load_threshold_px",
    RUNTIME_CONFIG["paging"].get("lazy_load_threshold_px"),
    DEFAULT_CONFIG["paging"]["lazy_load_threshold_px"],
)

# Debounce windows
SEARCH_DEBOUNCE_MS = _as_positive_int(
    "timing.search_debounce_ms",
    RUNTIME_CONFIG["timing"].get("search_debounce_ms"),
    DEFAULT_CONFIG["timing"]["search_debounce_ms"],
)
COLUMN_ORDER_DEBOUNCE_MS = _as_positive_int(
    "timing.column_order_debounce_ms",
    RUNTIME_CONFIG["timing"].get("column_order_debounce_ms"),
    DEFAULT_CONFIG["timing"]["column_order_debounce_ms"],
)

# Display
CURRENCY_SYMBOL = _as_str(
    "display.currency_symbol",
    RUNTIME_CONFIG["display"].get("currency_symbol"),
    DEFAULT_CONFIG["display"]["currency_symbol"],
)
DATE_FORMAT = _as_str(
    "display.date_format",
    RUNTIME_CONFIG["display"].get("date_format"),
    DEFAULT_CONFIG["display"]["date_format"],
)
COMMIT_DATE_FORMAT = _as_str(
    "display.commit_date_format",
    RUNTIME_CONFIG["display"].get("commit_date_format"),
    DEFAULT_CONFIG["display"]["commit_date_format"],
)
