"""ABOUTME: Invoice generation for a single entity and spreadsheet validation
ABOUTME: Turns one validated row into a report workbook and, when possible, a matching PDF"""

import logging
from dataclasses import dataclass
from pathlib import Path

from v2backoffice.adapters.pdf_renderer import PdfRenderer
from v2backoffice.adapters.spreadsheet import InvalidSpreadsheet, read_invoice_rows, write_invoice_workbook
from v2backoffice.adapters.template_renderer import TemplateRenderer
from v2backoffice.domain.invoice_report import build_invoice_report, report_file_base_name
from v2backoffice.domain.invoice_rows import InvoiceRow, compute_fees

from .exceptions import SpreadsheetValidationError

logger = logging.getLogger(__name__)

INVOICE_HTML_TEMPLATE = "invoices/invoice.html"


@dataclass(frozen=True)
class SpreadsheetSummary:
    row_count: int
    valid_entities: int

    def to_dict(self) -> dict[str, int]:
        return {"rowCount": self.row_count, "validEntities": self.valid_entities}


def validate_spreadsheet(path: Path) -> list[InvoiceRow]:
    """Read and check an uploaded input sheet.

    Raises:
        SpreadsheetValidationError: the sheet is missing, not Excel, empty or lacks required columns
    """
    try:
        return read_invoice_rows(path)
    except InvalidSpreadsheet as error:
        raise SpreadsheetValidationError([str(error)]) from error


def summarise_rows(rows: list[InvoiceRow]) -> SpreadsheetSummary:
    return SpreadsheetSummary(row_count=len(rows), valid_entities=sum(1 for row in rows if row.is_billable))


def unique_output_paths(output_dir: Path, base_name: str) -> tuple[Path, Path]:
    """Pick `.xlsx`/`.pdf` paths that clash with nothing already in `output_dir`.

    The first free `base_name_<n>` is used when the plain name is taken.
    """
    xlsx_path = output_dir / f"{base_name}.xlsx"
    pdf_path = output_dir / f"{base_name}.pdf"
    counter = 1
    while xlsx_path.exists() or pdf_path.exists():
        xlsx_path = output_dir / f"{base_name}_{counter}.xlsx"
        pdf_path = output_dir / f"{base_name}_{counter}.pdf"
        counter += 1
    return xlsx_path, pdf_path


def generate_invoice_for_entity(
    row: InvoiceRow,
    invoice_year: str,
    output_dir: Path,
    renderer: TemplateRenderer,
    pdf_renderer: PdfRenderer | None = None,
) -> list[str]:
    """Write the report files for one entity and return their paths.

    The workbook is always written; a PDF failure is logged and the entity
    keeps just its workbook.
    """
    report = build_invoice_report(row, compute_fees(row), invoice_year)
    xlsx_path, pdf_path = unique_output_paths(output_dir, report_file_base_name(invoice_year, row.entity_id))

    write_invoice_workbook(report, xlsx_path)
    generated = [str(xlsx_path)]

    if pdf_renderer is None:
        return generated

    try:
        html = renderer.render_template(INVOICE_HTML_TEMPLATE, report=report)
        pdf_renderer.render_html_to_pdf(html, pdf_path)
    except Exception:  # any rendering failure leaves the entity with its workbook
        logger.exception("PDF generation failed for entity %s", row.entity_id)
    else:
        generated.append(str(pdf_path))
    return generated
