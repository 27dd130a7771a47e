"""Advanced search: compose a field -> value filter from chosen columns."""

from . import field_types as ft
from .columns import find_column, searchable_columns


def is_blank_filter_value(value):
    """True for values that mean "no filter on this field"."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def sanitize_filters(filters):
    """Drop blank entries; falsy-but-meaningful values (0, False) survive."""
    return {
        key: value
        for key, value in (filters or {}).items()
        if not is_blank_filter_value(value)
    }


def filter_input(column):
    """Describe the input widget used for filtering on ``column``."""
    field_type = ft.resolve_field_type(column)
    options = list(column.get("options") or [])
    if ft.is_multi_valued(column):
        return {"widget": "multi_select", "options": options}
    if ft.is_single_select(column):
        return {"widget": "select", "options": options}
    if field_type == ft.CHECKBOX:
        return {"widget": "checkbox"}
    if field_type == ft.DATE:
        return {"widget": "date", "format": "DD/MM/YYYY"}
    if field_type == ft.TIME:
        return {"widget": "time"}
    if field_type in (ft.MONEY, ft.NUMBER):
        return {"widget": "number"}
    return {"widget": "text"}


class FilterComposer:
    """Draft state of the advanced-search dialog.

    Parameters
    ----------
    columns_getter : callable
        Returns the current column descriptors.
    on_apply : callable
        Receives the sanitized filter map (the page loader's
        ``set_advanced_filters``).
    """

    def __init__(self, columns_getter, on_apply):
        self._columns_getter = columns_getter
        self._on_apply = on_apply
        self.selected_fields = []
        self.draft = {}
        self.applied = {}
        self.is_open = False

    def available_fields(self):
        return [
            {"accessor_path": c["accessor_path"], "header": c["header"], "input": filter_input(c)}
            for c in searchable_columns(self._columns_getter())
        ]

    def open(self):
        """Open the dialog seeded from the applied filters."""
        self.is_open = True
        self.selected_fields = list(self.applied)
        self.draft = dict(self.applied)

    def close(self):
        self.is_open = False

    def select_field(self, accessor_path):
        column = find_column(searchable_columns(self._columns_getter()), accessor_path)
        if column is None:
            return False
        path = column["accessor_path"]
        if path not in self.selected_fields:
            self.selected_fields.append(path)
        self.draft.setdefault(path, "")
        return True

    def deselect_field(self, accessor_path):
        if accessor_path in self.selected_fields:
            self.selected_fields.remove(accessor_path)
        self.draft.pop(accessor_path, None)

    def set_fields(self, accessor_paths):
        """Replace the chosen subset; dropped fields lose their draft values."""
        wanted = list(dict.fromkeys(accessor_paths or []))
        for path in list(self.selected_fields):
            if path not in wanted:
                self.deselect_field(path)
        for path in wanted:
            self.select_field(path)

    def set_value(self, accessor_path, value):
        if accessor_path not in self.selected_fields:
            return False
        self.draft[accessor_path] = value
        return True

    def inputs(self):
        """One input description per chosen field, in selection order."""
        columns = self._columns_getter()
        result = []
        for path in self.selected_fields:
            column = find_column(columns, path)
            if column is None:
                continue
            result.append({
                "accessor_path": path,
                "header": column["header"],
                "input": filter_input(column),
                "value": self.draft.get(path, ""),
            })
        return result

    def apply(self):
        """Commit the sanitized draft and close the dialog."""
        self.applied = sanitize_filters(self.draft)
        self._on_apply(dict(self.applied))
        self.close()
        return dict(self.applied)

    def reset(self):
        """Clear the draft form; the dialog stays open and nothing is committed."""
        self.selected_fields = []
        self.draft = {}

    def remove_filter(self):
        """Clear the draft, commit an empty filter set and close."""
        self.reset()
        self.applied = {}
        self._on_apply({})
        self.close()

    def active_count(self):
        return len(self.applied)
