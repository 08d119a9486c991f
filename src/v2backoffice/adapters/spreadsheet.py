"""ABOUTME: Excel adapter for reading invoice input sheets and writing invoice reports
ABOUTME: openpyxl handles .xlsx and xlrd legacy .xls; reading validates the header row, writing lays out the report"""

import logging
from pathlib import Path
from typing import Any

import xlrd
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from xlrd.sheet import Cell

from v2backoffice.domain.invoice_report import InvoiceReport
from v2backoffice.domain.invoice_rows import REQUIRED_COLUMNS, InvoiceRow

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xls")
SHEET_NAME = "Invoice"
COLUMN_WIDTHS = (45, 18, 35, 8, 12, 12, 12, 12)
# 1-based column where the quarterly sub-table starts (D)
QUARTERLY_COLUMN = 4


class InvalidSpreadsheet(Exception):
    """The file cannot be read as an invoice input sheet."""


def is_excel_filename(filename: str) -> bool:
    return Path(filename).suffix.lower() in EXCEL_EXTENSIONS


def _is_blank(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and not cell.strip())


def _xls_cell_value(cell: Cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    return cell.value


def _read_xls_rows(path: Path) -> list[tuple[Any, ...]]:
    workbook = xlrd.open_workbook(str(path), on_demand=True)
    try:
        sheet = workbook.sheet_by_index(0)
        return [tuple(_xls_cell_value(cell, workbook.datemode) for cell in sheet.row(i)) for i in range(sheet.nrows)]
    finally:
        workbook.release_resources()


def _read_sheet_rows(path: Path) -> list[tuple[Any, ...]]:
    """All non-blank rows of the first sheet, header included."""
    if path.suffix.lower() == ".xls":
        rows = _read_xls_rows(path)
        return [row for row in rows if not all(_is_blank(c) for c in row)]

    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        worksheet = workbook.worksheets[0]
        return [row for row in worksheet.iter_rows(values_only=True) if not all(_is_blank(c) for c in row)]
    finally:
        workbook.close()


def read_invoice_rows(path: Path) -> list[InvoiceRow]:
    """Validate an input sheet and parse its data rows.

    Rows whose first cell is empty are ignored. Rows with no entity path are
    kept; they are skipped later, when invoices are generated.

    Raises:
        InvalidSpreadsheet: with a message suitable for showing to the user
    """
    if not path.exists():
        raise InvalidSpreadsheet("File does not exist")
    if not is_excel_filename(path.name):
        raise InvalidSpreadsheet("File must be an Excel file (.xlsx or .xls)")

    try:
        rows = _read_sheet_rows(path)
    except Exception as error:  # openpyxl raises a mix of zipfile, KeyError and its own errors, xlrd raises XLRDError
        raise InvalidSpreadsheet(f"Error reading Excel file: {error}") from error

    if len(rows) < 2:
        raise InvalidSpreadsheet("Excel file must contain at least a header row and one data row")

    headers = [str(cell).strip() if cell is not None else "" for cell in rows[0]]
    missing = [column for column in REQUIRED_COLUMNS if column not in headers]
    if missing:
        raise InvalidSpreadsheet(f"Missing required columns: {', '.join(missing)}")

    return [InvoiceRow.from_cells(headers, cells) for cells in rows[1:] if cells and not _is_blank(cells[0])]


def write_invoice_workbook(report: InvoiceReport, path: Path) -> None:
    """Write the fee report as a single sheet workbook without gridlines."""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = SHEET_NAME
    worksheet.sheet_view.showGridLines = False
    workbook.properties.title = "Performance Fee Calculation"
    workbook.properties.subject = "Invoice"
    workbook.properties.creator = "V2 Financial Services"

    centered = Alignment(horizontal="center")
    right = Alignment(horizontal="right")

    worksheet.cell(row=1, column=1, value=report.title).font = Font(bold=True, size=14)
    worksheet.cell(row=1, column=1).alignment = centered
    worksheet.merge_cells(start_row=1, start_column=1, end_row=1, end_column=3)
    worksheet.cell(row=2, column=1, value=report.subtitle).font = Font(bold=True, size=12)
    worksheet.cell(row=2, column=1).alignment = centered
    worksheet.merge_cells(start_row=2, start_column=1, end_row=2, end_column=3)

    # row 3 stays empty
    row_number = 4
    for line in report.lines:
        worksheet.cell(row=row_number, column=1, value=line.label)
        worksheet.cell(row=row_number, column=2, value=line.value).alignment = right
        if line.note:
            note = worksheet.cell(row=row_number, column=3, value=line.note)
            note.font = Font(italic=True)
            note.alignment = Alignment(wrap_text=True, vertical="top")
        row_number += 1

    # one empty row, then the quarterly sub-table
    row_number += 1
    title_cell = worksheet.cell(row=row_number, column=QUARTERLY_COLUMN, value=report.quarterly_title)
    title_cell.font = Font(bold=True)
    title_cell.alignment = centered
    last_column = QUARTERLY_COLUMN + len(report.quarterly_labels)
    worksheet.merge_cells(
        start_row=row_number, start_column=QUARTERLY_COLUMN, end_row=row_number, end_column=last_column
    )
    for offset, (label, value, billed_on) in enumerate(
        zip(report.quarterly_labels, report.quarterly_values, report.quarterly_dates, strict=True), start=1
    ):
        column = QUARTERLY_COLUMN + offset
        header = worksheet.cell(row=row_number + 1, column=column, value=label)
        header.font = Font(bold=True)
        header.alignment = centered
        worksheet.cell(row=row_number + 2, column=column, value=value).alignment = right
        worksheet.cell(row=row_number + 3, column=column, value=billed_on).alignment = centered

    for index, width in enumerate(COLUMN_WIDTHS, start=1):
        worksheet.column_dimensions[get_column_letter(index)].width = width

    workbook.save(path)
    logger.debug("Wrote invoice workbook %s", path)
