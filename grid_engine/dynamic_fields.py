"""Parse and order organization-defined dynamic field definitions."""

import sys

DYNAMIC_FIELDS_KEY = "dynamicFields"
DYNAMIC_PREFIX = DYNAMIC_FIELDS_KEY + "."

_VALID_TYPES = {
    "TEXT", "SELECT", "MULTI_SELECT", "CHECKBOX", "DATE", "TIME", "MONEY",
    "NUMBER", "EMAIL", "PHONE", "ADDRESS", "IMAGE", "LINK",
}


def is_dynamic_path(accessor_path):
    return str(accessor_path or "").startswith(DYNAMIC_PREFIX)


def dynamic_field_name(accessor_path):
    """Return ``customField`` for ``dynamicFields.customField``, else ``None``."""
    path = str(accessor_path or "")
    if not path.startswith(DYNAMIC_PREFIX):
        return None
    return path[len(DYNAMIC_PREFIX):] or None


def dynamic_path(field_name):
    return DYNAMIC_PREFIX + str(field_name)


def parse_dynamic_fields(config):
    """Parse an entity's ``{"fields": {...}, "fieldOrder": [...]}`` config.

    Returns a dict ``name -> {"name", "label", "type", "choices", "required",
    "default"}``.  Invalid entries are dropped with a stderr warning.
    """
    raw = (config or {}).get("fields")
    if not raw:
        return {}

    if not isinstance(raw, dict):
        print(f"warning: dynamic fields must be a mapping, got {type(raw).__name__}", file=sys.stderr)
        return {}

    result = {}
    for name, item in raw.items():
        name = str(name or "").strip()
        if not name or "." in name:
            print(f"warning: dynamic field has invalid name={name!r}, skipping", file=sys.stderr)
            continue
        if not isinstance(item, dict):
            print(f"warning: dynamic field {name!r} is not a dict, skipping", file=sys.stderr)
            continue

        field_type = str(item.get("type") or "TEXT").strip().upper()
        if field_type not in _VALID_TYPES:
            print(f"warning: dynamic field {name!r} unknown type={field_type!r}, defaulting to TEXT", file=sys.stderr)
            field_type = "TEXT"

        choices = item.get("choices")
        if not isinstance(choices, list):
            choices = []

        result[name] = {
            "name": name,
            "label": str(item.get("label") or name),
            "type": field_type,
            "choices": [str(c) for c in choices if c not in (None, "")],
            "required": bool(item.get("required", False)),
            "default": item.get("defaultValue"),
        }

    return result


def ordered_field_names(fields, field_order=None):
    """Order dynamic field names by a saved order.

    Names in ``field_order`` that are no longer defined are dropped; defined
    names missing from it are appended in definition order.
    """
    defined = list(fields or {})
    ordered = []
    seen = set()
    for name in field_order or []:
        if name in fields and name not in seen:
            ordered.append(name)
            seen.add(name)
    for name in defined:
        if name not in seen:
            ordered.append(name)
            seen.add(name)
    return ordered


def get_dynamic_values(row):
    """Return the row's dynamic field values (empty dict when absent)."""
    values = (row or {}).get(DYNAMIC_FIELDS_KEY)
    return values if isinstance(values, dict) else {}
