"""Field-type registry: display formatting, edit widgets and commit normalization.

Each column carries a ``field_type``.  For a column and a raw row value the
registry answers three questions:

* how the value is displayed (``format_display``),
* which editor the cell opens and what it is seeded with (``edit_widget``,
  ``edit_value``),
* what is sent on commit (``normalize_commit``).

Commit normalization returns a result dict in the same shape as remote
outcomes::

    {"ok": True, "value": ...}
    {"ok": False, "error_code": ..., "message": ..., "clear_input": bool}
"""

import json
import math
from collections.abc import Mapping

from .config import CURRENCY_SYMBOL
from .validators import (
    format_display_date,
    is_valid_id_number,
    normalize_commit_date,
    validate_time,
)

TEXT = "TEXT"
SELECT = "SELECT"
MULTI_SELECT = "MULTI_SELECT"
CHECKBOX = "CHECKBOX"
DATE = "DATE"
TIME = "TIME"
MONEY = "MONEY"
NUMBER = "NUMBER"
EMAIL = "EMAIL"
PHONE = "PHONE"
ADDRESS = "ADDRESS"
IMAGE = "IMAGE"
LINK = "LINK"

FIELD_TYPES = (
    TEXT, SELECT, MULTI_SELECT, CHECKBOX, DATE, TIME, MONEY,
    NUMBER, EMAIL, PHONE, ADDRESS, IMAGE, LINK,
)

ID_NUMBER_FIELD = "idNumber"

_TRUTHY = {"true", "1"}


def _accepted(value):
    return {"ok": True, "value": value}


def _rejected(error_code, message, clear_input=False):
    return {
        "ok": False,
        "error_code": error_code,
        "message": message,
        "clear_input": bool(clear_input),
    }


def resolve_field_type(column):
    """Return the effective field type of a column (TEXT when unknown)."""
    field_type = str((column or {}).get("field_type") or TEXT).upper()
    return field_type if field_type in FIELD_TYPES else TEXT


def is_multi_valued(column):
    field_type = resolve_field_type(column)
    if field_type == MULTI_SELECT:
        return True
    return bool(column.get("is_relationship") and column.get("multiple"))


def is_single_select(column):
    field_type = resolve_field_type(column)
    if field_type == SELECT:
        return not is_multi_valued(column)
    return bool(column.get("is_relationship") and not column.get("multiple"))


def is_id_number_column(column):
    path = str((column or {}).get("accessor_path") or "")
    return path.rsplit(".", 1)[-1] == ID_NUMBER_FIELD


def coerce_bool(value):
    """Truthy-string coercion used by checkbox cells."""
    if value is True:
        return True
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in _TRUTHY


def parse_multi_value(value):
    """Return a list of option-value strings from any input representation.

    Lists pass through; strings are tried as a JSON array first and split on
    commas otherwise.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    text = str(value).strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v).strip() for v in parsed if v is not None and str(v).strip()]
    return [part.strip() for part in text.split(",") if part.strip()]


def strip_money(value):
    """Keep only digits and decimal points."""
    return "".join(ch for ch in str(value if value is not None else "") if ch.isdigit() or ch == ".")


def format_money(value):
    if value in (None, ""):
        return ""
    try:
        amount = float(strip_money(value) if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return str(value)
    return f"{CURRENCY_SYMBOL}{amount:,.2f}"


def option_label(column, value):
    """Map an option value to its label (value itself when unknown)."""
    options = (column or {}).get("options") or []
    for option in options:
        if str(option.get("value")) == str(value):
            return str(option.get("label", option.get("value")))
    return str(value)


def format_object(value):
    """Readable text for a nested object (person, reference, ...)."""
    firstname = value.get("firstname")
    lastname = value.get("lastname")
    if isinstance(firstname, str) and isinstance(lastname, str) and firstname and lastname:
        return f"{firstname} {lastname}"
    for key in ("name", "label", "_id"):
        text = value.get(key)
        if isinstance(text, str) and text:
            return text
    return json.dumps(value, ensure_ascii=False, default=str)


def format_display(column, value):
    """Return the display text of ``value`` for ``column``."""
    field_type = resolve_field_type(column)

    if value is None:
        return ""
    if field_type == CHECKBOX:
        return "Yes" if coerce_bool(value) else "No"
    if field_type == DATE:
        formatted = format_display_date(value)
        return formatted if formatted is not None else str(value)
    if field_type == MONEY:
        return format_money(value)
    if is_multi_valued(column) or isinstance(value, (list, tuple)):
        labels = []
        items = parse_multi_value(value) if not isinstance(value, (list, tuple)) else value
        for item in items:
            if isinstance(item, Mapping):
                labels.append(format_object(item))
            elif item not in (None, ""):
                labels.append(option_label(column, item))
        return ", ".join(labels)
    if isinstance(value, Mapping):
        return format_object(value)
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if is_single_select(column):
        return option_label(column, value)
    return str(value)


def edit_value(column, value):
    """Seed value for the cell editor (edit representation, not display text)."""
    field_type = resolve_field_type(column)

    if field_type == CHECKBOX:
        return coerce_bool(value)
    if is_multi_valued(column):
        return parse_multi_value(value)
    if value is None:
        return "" if not is_single_select(column) else None
    if field_type == DATE:
        formatted = format_display_date(value)
        return formatted if formatted is not None else str(value)
    if field_type == MONEY:
        return strip_money(value)
    return value if is_single_select(column) else str(value)


def edit_widget(column):
    """Describe the editor a cell of ``column`` opens."""
    field_type = resolve_field_type(column)
    options = list((column or {}).get("options") or [])

    if is_multi_valued(column):
        return {"widget": "multi_select", "options": options, "chips": bool(column.get("is_relationship"))}
    if is_single_select(column):
        return {"widget": "select", "options": options, "chips": bool(column.get("is_relationship")), "clearable": True}
    if field_type == CHECKBOX:
        return {"widget": "checkbox", "immediate": True}
    if field_type == DATE:
        return {"widget": "date", "format": "DD/MM/YYYY"}
    if field_type == TIME:
        return {"widget": "time", "pattern": "HH:MM"}
    if field_type == MONEY:
        return {"widget": "money", "currency": CURRENCY_SYMBOL, "allowed_chars": "0123456789."}
    if field_type == NUMBER:
        return {"widget": "number"}
    if field_type in (EMAIL, PHONE, LINK):
        return {"widget": field_type.lower()}
    if field_type == ADDRESS:
        return {"widget": "address"}
    if field_type == IMAGE:
        return {"widget": "image"}
    return {"widget": "text"}


def normalize_commit(column, raw):
    """Normalize raw edit input to the value sent on commit."""
    field_type = resolve_field_type(column)

    if is_id_number_column(column):
        text = str(raw if raw is not None else "").strip()
        if text and not is_valid_id_number(text):
            return _rejected("id_number_invalid", f"Invalid ID number: {text}", clear_input=True)
        return _accepted(text)

    if field_type == CHECKBOX:
        return _accepted(coerce_bool(raw))

    if is_multi_valued(column):
        return _accepted(parse_multi_value(raw))

    if is_single_select(column):
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return _accepted(None)
        return _accepted(str(raw))

    if field_type == TIME:
        text = str(raw if raw is not None else "").strip()
        if not validate_time(text):
            return _rejected("time_invalid", f"Invalid time (expected HH:MM): {text}")
        return _accepted(text)

    if field_type == MONEY:
        text = strip_money(raw)
        if not text or text.count(".") > 1 or text == ".":
            return _rejected("money_invalid", f"Invalid amount: {raw}")
        return _accepted(text)

    if field_type == NUMBER:
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            number = raw
        else:
            text = str(raw if raw is not None else "").strip()
            if not text:
                return _accepted(None)
            try:
                number = int(text)
            except ValueError:
                try:
                    number = float(text)
                except ValueError:
                    return _rejected("number_invalid", f"Invalid number: {text}")
        # nan/inf have no JSON encoding.
        if isinstance(number, float) and not math.isfinite(number):
            return _rejected("number_invalid", f"Invalid number: {raw}")
        return _accepted(number)

    if field_type == DATE:
        return _accepted(normalize_commit_date(raw))

    if raw is None:
        return _accepted("")
    return _accepted(raw if isinstance(raw, str) else str(raw))
