"""Export helpers: string matrix for visible columns plus CSV / XLSX sinks."""

import csv
import os

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from . import field_types as ft
from .columns import data_columns, get_value
from .dynamic_fields import DYNAMIC_PREFIX
from .validators import format_display_date

HEADER_FILL = PatternFill(start_color="D3E3F5", end_color="D3E3F5", fill_type="solid")
ALTERNATE_FILL = PatternFill(start_color="F5F5F5", end_color="F5F5F5", fill_type="solid")
HEADER_FONT = Font(bold=True, color="000000", size=11)
CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)
_HEADER_SIDE = Side(style="thin", color="000000")
_CELL_SIDE = Side(style="thin", color="D3D3D3")
HEADER_BORDER = Border(left=_HEADER_SIDE, right=_HEADER_SIDE, top=_HEADER_SIDE, bottom=_HEADER_SIDE)
CELL_BORDER = Border(left=_CELL_SIDE, right=_CELL_SIDE, top=_CELL_SIDE, bottom=_CELL_SIDE)


def export_header(column, index):
    header = str(column.get("header") or column.get("accessor_path") or column.get("id") or "")
    if header.startswith(DYNAMIC_PREFIX):
        header = header[len(DYNAMIC_PREFIX):]
    header = header.strip()
    return header or f"Column {index + 1}"


def export_cell(column, value):
    """Format one value for export, following the on-screen display rules."""
    if value is None:
        return ""
    if ft.resolve_field_type(column) == ft.DATE:
        formatted = format_display_date(value)
        return formatted if formatted is not None else str(value)
    return ft.format_display(column, value)


def build_export_matrix(columns, rows):
    """Build ``{"headers": [...], "rows": [[...], ...]}`` for export.

    Only visible data columns are exported (selection/actions columns and
    hidden columns are skipped).
    """
    exported = data_columns(columns)
    headers = [export_header(column, index) for index, column in enumerate(exported)]
    matrix = []
    for row in rows or []:
        if not isinstance(row, dict):
            continue
        matrix.append([export_cell(column, get_value(row, column["accessor_path"])) for column in exported])
    return {"headers": headers, "rows": matrix}


def export_matrix_to_csv(matrix, output_path):
    """Write an export matrix to CSV and return export metadata."""
    abs_output_path = os.path.abspath(os.fspath(output_path))
    # utf-8-sig so spreadsheet apps detect the encoding of non-Latin headers.
    with open(abs_output_path, "w", newline="", encoding="utf-8-sig") as handle:
        writer = csv.writer(handle)
        writer.writerow(matrix["headers"])
        for row in matrix["rows"]:
            writer.writerow(row)

    return {
        "path": abs_output_path,
        "count": len(matrix["rows"]),
        "columns": list(matrix["headers"]),
    }


def export_matrix_to_xlsx(matrix, output_path, sheet_title="Selected Rows"):
    """Write an export matrix to a styled XLSX sheet and return export metadata."""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title

    headers = matrix["headers"]
    sheet.append(headers)
    sheet.row_dimensions[1].height = 25
    for cell in sheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = CENTER
        cell.border = HEADER_BORDER

    for offset, row in enumerate(matrix["rows"]):
        sheet.append(row)
        excel_row = offset + 2
        for cell in sheet[excel_row]:
            cell.alignment = CENTER
            cell.border = CELL_BORDER
            if offset % 2 == 1:
                cell.fill = ALTERNATE_FILL

    for index, header in enumerate(headers, start=1):
        longest = max([len(str(header))] + [len(str(r[index - 1])) for r in matrix["rows"] if len(r) >= index])
        sheet.column_dimensions[get_column_letter(index)].width = min(50, max(10, longest + 2))
    sheet.freeze_panes = "A2"

    abs_output_path = os.path.abspath(os.fspath(output_path))
    workbook.save(abs_output_path)
    return {
        "path": abs_output_path,
        "count": len(matrix["rows"]),
        "columns": list(headers),
    }
