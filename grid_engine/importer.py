"""Map spreadsheet rows (header -> text) onto row payloads for creation."""

from . import field_types as ft
from .columns import data_columns
from .dynamic_fields import DYNAMIC_FIELDS_KEY, dynamic_field_name
from .validators import parse_date
from .config import COMMIT_DATE_FORMAT


def _column_lookup(columns):
    """Accept accessor paths, ids and headers as spreadsheet keys."""
    lookup = {}
    for column in data_columns(columns):
        for key in (column["header"], column["id"], column["accessor_path"]):
            if key:
                lookup.setdefault(str(key).strip(), column)
    return lookup


def transform_import_row(row, columns):
    """Turn one spreadsheet row into a create payload.

    Blank cells are dropped, ``dynamicFields.*`` keys are nested under
    ``dynamicFields`` and DATE columns are sent as ISO dates when parsable.
    Unknown keys are kept as-is.
    """
    lookup = _column_lookup(columns)
    payload = {}
    dynamic = {}

    for key, raw in (row or {}).items():
        value = raw.strip() if isinstance(raw, str) else raw
        if value in ("", None):
            continue
        column = lookup.get(str(key).strip())
        path = column["accessor_path"] if column else str(key).strip()

        if column and ft.resolve_field_type(column) == ft.DATE:
            parsed = parse_date(value)
            if parsed is not None:
                value = parsed.strftime(COMMIT_DATE_FORMAT)
        elif column and ft.is_multi_valued(column):
            value = ft.parse_multi_value(value)

        name = dynamic_field_name(path)
        if name:
            dynamic[name] = value
        else:
            payload[path] = value

    if dynamic:
        payload[DYNAMIC_FIELDS_KEY] = dynamic
    return payload


def transform_import_rows(rows, columns):
    """Transform many rows, dropping rows that end up empty."""
    result = []
    for row in rows or []:
        payload = transform_import_row(row, columns)
        if payload:
            result.append(payload)
    return result
