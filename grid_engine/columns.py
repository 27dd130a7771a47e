"""Column model: normalize column declarations into uniform descriptors.

Base (static) declarations and organization-defined dynamic fields are merged
into one ordered list of descriptors::

    {
        "id", "accessor_path", "header", "field_type", "options",
        "relationship_options", "is_relationship", "multiple",
        "editable", "hidden", "exclude_from_search", "is_dynamic",
    }
"""

import copy
import sys

from . import field_types as ft
from .dynamic_fields import (
    DYNAMIC_FIELDS_KEY,
    dynamic_field_name,
    dynamic_path,
    is_dynamic_path,
    ordered_field_names,
    parse_dynamic_fields,
)

SELECT_COLUMN_ID = "select"
ACTIONS_COLUMN_ID = "actions"
CONTROL_COLUMN_IDS = frozenset({SELECT_COLUMN_ID, ACTIONS_COLUMN_ID})


def _normalize_options(raw):
    options = []
    for item in raw or []:
        if isinstance(item, dict):
            value = item.get("value")
            if value is None:
                continue
            options.append({"value": value, "label": str(item.get("label", value))})
        elif item not in (None, ""):
            options.append({"value": item, "label": str(item)})
    return options


def _declared_type(decl):
    field_type = decl.get("field_type")
    if field_type:
        return str(field_type).upper()
    # Older declarations flag the type with booleans.
    if decl.get("is_date"):
        return ft.DATE
    if decl.get("is_time"):
        return ft.TIME
    if decl.get("is_money"):
        return ft.MONEY
    return ft.TEXT


def is_control_column(column):
    return str((column or {}).get("id") or "") in CONTROL_COLUMN_IDS


def normalize_column(decl):
    """Normalize one declaration. Returns ``None`` if it cannot be used."""
    if not isinstance(decl, dict):
        print(f"warning: column declaration is not a dict: {decl!r}, skipping", file=sys.stderr)
        return None

    accessor_path = str(decl.get("accessor_path") or "").strip()
    column_id = str(decl.get("id") or accessor_path).strip()
    if not column_id:
        print("warning: column declaration has neither id nor accessor_path, skipping", file=sys.stderr)
        return None
    if accessor_path.count(".") > 1:
        print(f"warning: column {column_id!r} accessor_path nests deeper than one level, skipping", file=sys.stderr)
        return None

    field_type = _declared_type(decl)
    if field_type not in ft.FIELD_TYPES:
        print(f"warning: column {column_id!r} unknown field_type={field_type!r}, defaulting to TEXT", file=sys.stderr)
        field_type = ft.TEXT

    relationship_options = _normalize_options(decl.get("relationship_options"))
    is_relationship = bool(relationship_options)
    multiple = bool(decl.get("multiple", field_type == ft.MULTI_SELECT))
    options = _normalize_options(decl.get("options"))
    if is_relationship:
        if not options:
            options = list(relationship_options)
        field_type = ft.MULTI_SELECT if multiple else ft.SELECT

    control = column_id in CONTROL_COLUMN_IDS
    editable = bool(decl.get("editable", True)) and not control and bool(accessor_path)

    return {
        "id": column_id,
        "accessor_path": accessor_path,
        "header": str(decl.get("header") or dynamic_field_name(accessor_path) or column_id),
        "field_type": field_type,
        "options": options,
        "relationship_options": relationship_options,
        "is_relationship": is_relationship,
        "multiple": multiple,
        "editable": editable,
        "hidden": bool(decl.get("hidden", False)),
        "exclude_from_search": bool(decl.get("exclude_from_search", control)),
        "is_dynamic": bool(decl.get("is_dynamic", is_dynamic_path(accessor_path))),
    }


def dynamic_column_declarations(dynamic_config, resolve_field_label=None):
    """Build column declarations for an entity's dynamic field config."""
    fields = parse_dynamic_fields(dynamic_config)
    order = ordered_field_names(fields, (dynamic_config or {}).get("fieldOrder"))
    declarations = []
    for name in order:
        definition = fields[name]
        header = definition["label"]
        if resolve_field_label:
            header = resolve_field_label(name) or header
        declarations.append({
            "id": dynamic_path(name),
            "accessor_path": dynamic_path(name),
            "header": header,
            "field_type": definition["type"],
            "options": definition["choices"],
            "editable": True,
            "is_dynamic": True,
        })
    return declarations


def build_columns(declarations, dynamic_config=None, resolve_field_label=None):
    """Merge static declarations with dynamic fields into a descriptor list.

    Dynamic columns follow the static ones unless an explicit
    ``{"id": "dynamicFields"}`` placeholder marks where they belong.
    Duplicate ids are dropped with a stderr warning.
    """
    dynamic_decls = dynamic_column_declarations(dynamic_config, resolve_field_label)

    merged = []
    inserted = False
    for decl in declarations or []:
        if isinstance(decl, dict) and decl.get("id") == DYNAMIC_FIELDS_KEY and not decl.get("accessor_path"):
            merged.extend(dynamic_decls)
            inserted = True
            continue
        merged.append(decl)
    if not inserted:
        merged.extend(dynamic_decls)

    columns = []
    seen_ids = set()
    for decl in merged:
        column = normalize_column(decl)
        if column is None:
            continue
        if column["id"] in seen_ids:
            print(f"warning: duplicate column id={column['id']!r}, skipping", file=sys.stderr)
            continue
        seen_ids.add(column["id"])
        columns.append(column)
    return columns


def find_column(columns, column_id):
    for column in columns or []:
        if column["id"] == column_id or column["accessor_path"] == column_id:
            return column
    return None


def visible_columns(columns):
    return [c for c in columns or [] if not c.get("hidden")]


def data_columns(columns):
    """Visible columns that carry row data (no selection/actions columns)."""
    return [c for c in visible_columns(columns) if not is_control_column(c) and c.get("accessor_path")]


def searchable_columns(columns):
    return [
        c for c in columns or []
        if c.get("accessor_path") and not c.get("exclude_from_search") and not is_control_column(c)
    ]


def get_value(row, accessor_path):
    """Read a value by dot-path (one nesting level)."""
    if not isinstance(row, dict) or not accessor_path:
        return None
    head, _, leaf = str(accessor_path).partition(".")
    value = row.get(head)
    if not leaf:
        return value
    if isinstance(value, dict):
        return value.get(leaf)
    return None


def with_value(row, accessor_path, value):
    """Return a copy of ``row`` with ``accessor_path`` set to ``value``.

    Nested paths merge into the existing sub-object instead of replacing it.
    """
    updated = dict(row or {})
    head, _, leaf = str(accessor_path).partition(".")
    if not leaf:
        updated[head] = value
        return updated
    nested = updated.get(head)
    nested = dict(nested) if isinstance(nested, dict) else {}
    nested[leaf] = value
    updated[head] = nested
    return updated


def commit_payload(row, accessor_path, value, id_field):
    """Partial update sent to the remote collaborator for one cell."""
    payload = {id_field: (row or {}).get(id_field)}
    head, _, leaf = str(accessor_path).partition(".")
    if not leaf:
        payload[head] = value
        return payload
    nested = (row or {}).get(head)
    nested = copy.deepcopy(nested) if isinstance(nested, dict) else {}
    nested[leaf] = value
    payload[head] = nested
    return payload
