"""ABOUTME: Unit tests for the spreadsheet adapter reading .xlsx and .xls input sheets and writing invoice reports
ABOUTME: Tests header validation messages, tolerant row parsing and the report sheet layout"""

from unittest.mock import MagicMock, patch

import pytest
import xlrd
from openpyxl import load_workbook
from xlrd.sheet import Cell

from tests.helpers import INVOICE_HEADERS, invoice_row, write_input_sheet
from v2backoffice.adapters.spreadsheet import (
    InvalidSpreadsheet,
    is_excel_filename,
    read_invoice_rows,
    write_invoice_workbook,
)
from v2backoffice.domain.invoice_report import build_invoice_report
from v2backoffice.domain.invoice_rows import InvoiceRow, compute_fees


@pytest.mark.parametrize(
    "filename,expected",
    [("input.xlsx", True), ("INPUT.XLS", True), ("input.csv", False), ("xlsx", False)],
)
def test_is_excel_filename(filename, expected):
    assert is_excel_filename(filename) is expected


class TestReadInvoiceRows:
    def test_reads_every_data_row(self, input_sheet):
        rows = read_invoice_rows(input_sheet)

        assert [row.entity_id for row in rows] == ["1001", "1002", "1003"]
        assert [row.is_billable for row in rows] == [True, False, True]

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidSpreadsheet, match="File does not exist"):
            read_invoice_rows(tmp_path / "nope.xlsx")

    def test_not_an_excel_file(self, tmp_path):
        path = tmp_path / "input.csv"
        path.write_text("Entity ID\n1\n")

        with pytest.raises(InvalidSpreadsheet, match="must be an Excel file"):
            read_invoice_rows(path)

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "input.xlsx"
        path.write_bytes(b"this is not a zip file")

        with pytest.raises(InvalidSpreadsheet, match="Error reading Excel file"):
            read_invoice_rows(path)

    def test_header_only(self, tmp_path):
        path = write_input_sheet(tmp_path / "input.xlsx", [])

        with pytest.raises(InvalidSpreadsheet, match="at least a header row and one data row"):
            read_invoice_rows(path)

    def test_missing_columns_are_named(self, tmp_path):
        headers = tuple(h for h in INVOICE_HEADERS if h not in ("Fee Cap", "Entity Path"))
        path = write_input_sheet(tmp_path / "input.xlsx", [invoice_row()], headers=headers)

        with pytest.raises(InvalidSpreadsheet, match="Missing required columns: Entity Path, Fee Cap"):
            read_invoice_rows(path)

    def test_optional_columns_can_be_absent(self, tmp_path):
        headers = tuple(h for h in INVOICE_HEADERS if not h.startswith("Q"))
        path = write_input_sheet(tmp_path / "input.xlsx", [invoice_row()], headers=headers)

        [row] = read_invoice_rows(path)

        assert row.quarterly_fees == (0, 0, 0, 0)

    def test_unreadable_numbers_become_zero(self, tmp_path):
        path = write_input_sheet(tmp_path / "input.xlsx", [invoice_row(**{"Fee Cap": "n/a", "Q1 Fees": None})])

        [row] = read_invoice_rows(path)

        assert row.fee_cap == 0
        assert row.q1_fees == 0

    def test_rows_without_entity_id_are_ignored(self, tmp_path):
        path = write_input_sheet(tmp_path / "input.xlsx", [invoice_row(), invoice_row(**{"Entity ID": None})])

        assert len(read_invoice_rows(path)) == 1


class TestWriteInvoiceWorkbook:
    @pytest.fixture
    def worksheet(self, tmp_path):
        values = invoice_row()
        row = InvoiceRow.from_cells(list(INVOICE_HEADERS), [values[h] for h in INVOICE_HEADERS])
        path = tmp_path / "report.xlsx"
        write_invoice_workbook(build_invoice_report(row, compute_fees(row), "2025"), path)
        return load_workbook(path).active

    def test_title_block(self, worksheet):
        merged = {str(cell_range) for cell_range in worksheet.merged_cells.ranges}

        assert worksheet.title == "Invoice"
        assert worksheet["A1"].value == "PERFORMANCE FEE CALCULATION"
        assert worksheet["A1"].font.bold
        assert worksheet["A2"].value == "Perf Based 7% Aggressive"
        assert {"A1:C1", "A2:C2"} <= merged
        assert worksheet["A3"].value is None

    def test_calculation_table(self, worksheet):
        assert worksheet["A4"].value == "Inception date of performance based billing"
        assert worksheet["B4"].value == "01/15/2020"
        assert worksheet["C4"].value == "This is the date from which IRR will be measured"
        assert worksheet["C4"].font.italic
        assert worksheet["A19"].value == "Adjusted final performance fees"
        assert worksheet["B19"].value == "$60.00"
        assert worksheet["A20"].value is None

    def test_quarterly_table(self, worksheet):
        merged = {str(cell_range) for cell_range in worksheet.merged_cells.ranges}

        assert worksheet["D21"].value == "Quarterly Asset based fees during 2025"
        assert "D21:H21" in merged
        assert [worksheet.cell(row=22, column=c).value for c in range(5, 9)] == ["Q1", "Q2", "Q3", "Q4"]
        assert [worksheet.cell(row=23, column=c).value for c in range(5, 9)] == [
            "$1,250",
            "$1,300",
            "$1,275",
            "$1,310",
        ]
        assert worksheet["E24"].value == "1/21/2025"

    def test_gridlines_hidden(self, worksheet):
        assert worksheet.sheet_view.showGridLines is False


def xls_cell(value):
    if value is None:
        return Cell(xlrd.XL_CELL_EMPTY, "")
    if isinstance(value, str):
        return Cell(xlrd.XL_CELL_TEXT, value)
    return Cell(xlrd.XL_CELL_NUMBER, float(value))


class TestReadLegacyXls:
    @pytest.fixture
    def xls_book(self, tmp_path):
        values = invoice_row(**{"Q1 Fees": None})
        header = [Cell(xlrd.XL_CELL_TEXT, h) for h in INVOICE_HEADERS]
        data = [xls_cell(values[h]) for h in INVOICE_HEADERS]
        # 2020-01-15 as an Excel serial date
        data[INVOICE_HEADERS.index("Inception Date")] = Cell(xlrd.XL_CELL_DATE, 43845.0)
        blank = [Cell(xlrd.XL_CELL_BLANK, "") for _ in INVOICE_HEADERS]
        sheet_rows = [header, data, blank]
        book = MagicMock(datemode=0)
        sheet = book.sheet_by_index.return_value
        sheet.nrows = len(sheet_rows)
        sheet.row.side_effect = lambda index: sheet_rows[index]

        path = tmp_path / "input.xls"
        path.write_bytes(b"")
        with patch("v2backoffice.adapters.spreadsheet.xlrd.open_workbook", return_value=book) as open_workbook:
            yield path, open_workbook, book

    def test_reads_first_sheet(self, xls_book):
        path, open_workbook, book = xls_book

        [row] = read_invoice_rows(path)

        open_workbook.assert_called_once_with(str(path), on_demand=True)
        book.sheet_by_index.assert_called_once_with(0)
        book.release_resources.assert_called_once()
        assert row.entity_id == "1001"
        assert row.inception_date == "2020-01-15"
        assert row.period_ending_market_value == 2_000_000
        assert row.q1_fees == 0

    def test_corrupt_xls_file(self, tmp_path):
        path = tmp_path / "input.xls"
        path.write_bytes(b"this is not a workbook")

        with pytest.raises(InvalidSpreadsheet, match="Error reading Excel file"):
            read_invoice_rows(path)
