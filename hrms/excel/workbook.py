"""openpyxl helpers shared by exports, templates and reports."""

from __future__ import annotations

import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
NOTE_FONT = Font(italic=True, color="808080")


def _cell_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if hasattr(value, "value") and not isinstance(value, (date, datetime)):
        return value.value  # enums
    return value


def write_sheet(
    ws: Worksheet,
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    *,
    notes: Optional[Sequence[str]] = None,
    width: int = 18,
) -> None:
    """Header row styled, optional italic notes row beneath it, then data rows."""
    for col_num, header in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        ws.column_dimensions[get_column_letter(col_num)].width = width

    row_num = 2
    if notes:
        for col_num, note in enumerate(notes, start=1):
            cell = ws.cell(row=row_num, column=col_num, value=note)
            cell.font = NOTE_FONT
            cell.alignment = Alignment(wrap_text=True)
        row_num += 1

    for row in rows:
        for col_num, value in enumerate(row, start=1):
            ws.cell(row=row_num, column=col_num, value=_cell_value(value))
        row_num += 1
    ws.freeze_panes = "A2"


def build_workbook(
    title: str,
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    *,
    notes: Optional[Sequence[str]] = None,
) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]
    write_sheet(ws, headers, rows, notes=notes)
    return wb


def add_sheet(
    wb: Workbook,
    title: str,
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
) -> Worksheet:
    ws = wb.create_sheet(title[:31])
    write_sheet(ws, headers, rows)
    return ws


def workbook_bytes(wb: Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def read_rows(content: bytes) -> tuple[list[str], list[tuple[int, dict[str, Any]]]]:
    """Headers of the first sheet and ``(row_number, {header: value})`` for each non-empty data row.

    Header names are lower-cased with spaces turned into underscores. A
    second row whose first cell is italic (the template guidance row) is
    skipped.
    """
    wb = load_workbook(io.BytesIO(content), data_only=True)
    ws = wb.worksheets[0]
    rows = ws.iter_rows(values_only=False)
    try:
        header_cells = next(rows)
    except StopIteration:
        return [], []
    headers = [str(c.value).strip().lower().replace(" ", "_") if c.value is not None else "" for c in header_cells]

    data: list[tuple[int, dict[str, Any]]] = []
    for cells in rows:
        values = [c.value for c in cells]
        if all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
            continue
        if cells and cells[0].font is not None and cells[0].font.i and cells[0].row == 2:
            continue
        record = {
            headers[i]: (v.strip() if isinstance(v, str) else v)
            for i, v in enumerate(values)
            if i < len(headers) and headers[i]
        }
        data.append((cells[0].row, record))
    return headers, data
