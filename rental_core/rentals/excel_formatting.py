"""Helpers for styling exported report workbooks."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence, Union

from openpyxl.cell.cell import MergedCell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

MONEY_FORMAT = "#,##0.00"

_TITLE_FONT = Font(color="1F4E78", bold=True, size=14)
_TITLE_ALIGNMENT = Alignment(horizontal="left", vertical="center")
_HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
_HEADER_FONT = Font(color="FFFFFF", bold=True)
_HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
_ALT_ROW_FILL = PatternFill(start_color="F3F6FC", end_color="F3F6FC", fill_type="solid")
_TOTAL_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
_TOTAL_FONT = Font(bold=True)
_TEXT_ALIGNMENT = Alignment(horizontal="left", vertical="top", wrap_text=True)
_NUMBER_ALIGNMENT = Alignment(horizontal="right", vertical="top")
_BORDER = Border(
    left=Side(style="thin", color="D9D9D9"),
    right=Side(style="thin", color="D9D9D9"),
    top=Side(style="thin", color="D9D9D9"),
    bottom=Side(style="thin", color="D9D9D9"),
)


def apply_report_styling(
    worksheet: Worksheet,
    headers: Sequence[str],
    header_row_index: int,
    title_row_index: Optional[int] = None,
    money_columns: Iterable[str] = (),
    total_row_index: Optional[int] = None,
    column_width_overrides: Optional[Mapping[Union[str, int], float]] = None,
    minimum_width: float = 12.0,
) -> None:
    """Apply the shared report look: title, banded rows, money formats, totals."""

    column_width_overrides = column_width_overrides or {}
    headers = list(headers)
    money_indexes = {headers.index(name) + 1 for name in money_columns if name in headers}

    if title_row_index:
        _style_title_row(worksheet, title_row_index, len(headers))

    _style_header_row(worksheet, header_row_index)
    _style_data_rows(worksheet, header_row_index, money_indexes, total_row_index)
    if total_row_index:
        _style_total_row(worksheet, total_row_index)
    _auto_size_columns(
        worksheet,
        headers=headers,
        header_row_index=header_row_index,
        column_width_overrides=column_width_overrides,
        minimum_width=minimum_width,
    )
    worksheet.freeze_panes = worksheet.cell(row=header_row_index + 1, column=1)


def _style_title_row(worksheet: Worksheet, row_index: int, column_count: int) -> None:
    if column_count > 1:
        worksheet.merge_cells(
            start_row=row_index, start_column=1, end_row=row_index, end_column=column_count
        )
    cell = worksheet.cell(row=row_index, column=1)
    cell.font = _TITLE_FONT
    cell.alignment = _TITLE_ALIGNMENT
    worksheet.row_dimensions[row_index].height = 28


def _style_header_row(worksheet: Worksheet, row_index: int) -> None:
    worksheet.row_dimensions[row_index].height = 26
    for cell in worksheet[row_index]:
        if isinstance(cell, MergedCell):
            continue
        cell.fill = _HEADER_FILL
        cell.font = _HEADER_FONT
        cell.alignment = _HEADER_ALIGNMENT
        cell.border = _BORDER


def _style_data_rows(
    worksheet: Worksheet,
    header_row_index: int,
    money_indexes: set,
    total_row_index: Optional[int],
) -> None:
    for row_index in range(header_row_index + 1, worksheet.max_row + 1):
        row = worksheet[row_index]
        if all((cell.value in (None, "")) for cell in row):
            continue
        use_alt_fill = row_index != total_row_index and (row_index - header_row_index) % 2 == 0
        for cell in row:
            if isinstance(cell, MergedCell):
                continue
            if cell.column in money_indexes:
                cell.number_format = MONEY_FORMAT
            if isinstance(cell.value, (int, float)) or cell.column in money_indexes:
                cell.alignment = _NUMBER_ALIGNMENT
            else:
                cell.alignment = _TEXT_ALIGNMENT
            cell.border = _BORDER
            if use_alt_fill:
                cell.fill = _ALT_ROW_FILL


def _style_total_row(worksheet: Worksheet, row_index: int) -> None:
    for cell in worksheet[row_index]:
        if isinstance(cell, MergedCell):
            continue
        cell.fill = _TOTAL_FILL
        cell.font = _TOTAL_FONT


def _auto_size_columns(
    worksheet: Worksheet,
    headers: Sequence[str],
    header_row_index: int,
    column_width_overrides: Mapping[Union[str, int], float],
    minimum_width: float,
) -> None:
    for index, header in enumerate(headers, start=1):
        column_letter = get_column_letter(index)
        explicit_width = column_width_overrides.get(header)
        if explicit_width is None:
            explicit_width = column_width_overrides.get(index)
        if explicit_width is not None:
            worksheet.column_dimensions[column_letter].width = float(explicit_width)
            continue

        max_length = len(str(header)) + 2
        for row_index in range(header_row_index + 1, worksheet.max_row + 1):
            value = worksheet.cell(row=row_index, column=index).value
            if value in (None, ""):
                continue
            max_length = max(max_length, len(str(value)))
        width = max(minimum_width, min(max_length + 2, 50))
        worksheet.column_dimensions[column_letter].width = float(width)
