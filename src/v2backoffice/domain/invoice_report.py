"""ABOUTME: Layout of the year end performance fee report for one entity
ABOUTME: Formats the fee figures once so the spreadsheet and the PDF show identical text"""

from dataclasses import dataclass
from datetime import datetime

from .invoice_rows import FeeCalculation, InvoiceRow

REPORT_TITLE = "PERFORMANCE FEE CALCULATION"
REPORT_SUBTITLE = "Perf Based 7% Aggressive"
FILE_TITLE = "Year end performance fee Calculation"
QUARTER_LABELS = ("Q1", "Q2", "Q3", "Q4")
# month/day each quarter's asset based fee is billed
QUARTER_BILLING_DAYS = ((1, 21), (4, 27), (7, 21), (10, 21))

_DATE_INPUT_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%d-%b-%Y", "%B %d, %Y")


def format_currency(value: float) -> str:
    """$1,234,567 for large amounts, $25.00 below a thousand."""
    if value >= 1000:
        return f"${value:,.0f}"
    return f"${value:.2f}"


def format_percent(value: float) -> str:
    return f"{value:.2f}%"


def format_date(value: str) -> str:
    """Render a date as MM/DD/YYYY, leaving text we cannot read as a date untouched."""
    text = value.strip()
    if not text:
        return ""
    try:
        return datetime.fromisoformat(text).strftime("%m/%d/%Y")
    except ValueError:
        pass
    for date_format in _DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(text, date_format).strftime("%m/%d/%Y")
        except ValueError:
            continue
    return value


def _share_of(amount: float, market_value: float) -> str:
    if market_value == 0:
        return format_percent(0)
    return format_percent(amount / market_value * 100)


def _billing_date(year: str, month: int, day: int) -> str:
    return f"{month}/{day}/{year}"


@dataclass(frozen=True)
class ReportLine:
    label: str
    value: str
    note: str = ""


@dataclass(frozen=True)
class InvoiceReport:
    title: str
    subtitle: str
    lines: tuple[ReportLine, ...]
    quarterly_title: str
    quarterly_labels: tuple[str, ...]
    quarterly_values: tuple[str, ...]
    quarterly_dates: tuple[str, ...]


def build_invoice_report(row: InvoiceRow, fees: FeeCalculation, invoice_year: str) -> InvoiceReport:
    market_value = row.period_ending_market_value
    lines = (
        ReportLine(
            "Inception date of performance based billing",
            format_date(row.inception_date),
            "This is the date from which IRR will be measured",
        ),
        ReportLine(f"{invoice_year} year end AUM", format_currency(market_value), "Excluding any staging accounts"),
        ReportLine(
            "Since inception IRR (measured from inception date above) after fees",
            format_percent(row.inception_performance),
            'Needs to exceed "Since inception benchmark" for perf',
        ),
        ReportLine("Since inception benchmark", format_percent(row.inception_benchmark)),
        ReportLine(f"{invoice_year} IRR after fees", format_percent(row.period_performance)),
        ReportLine(f"{invoice_year} benchmark", format_percent(row.year_benchmark)),
        ReportLine(f"Excess return over benchmark - {invoice_year}", format_percent(fees.excess_return * 100)),
        ReportLine("Performance fee rate", format_percent(row.performance_fee_rate)),
        ReportLine("Performance fee $", format_currency(fees.performance_fee)),
        ReportLine("Performance fee %", _share_of(fees.performance_fee, market_value)),
        ReportLine(
            f"Quarterly asset based Fees already billed during {invoice_year}",
            format_currency(row.quarterly_fees_total),
        ),
        ReportLine("Total fees (Asset based + Performance)", format_currency(fees.total_fees)),
        ReportLine("Fees as % of year end AUM", _share_of(fees.total_fees, market_value)),
        ReportLine("Fee cap", format_percent(row.fee_cap)),
        ReportLine("Adjusted total fees (if cap exceeded)", format_currency(fees.adjusted_total_fees)),
        ReportLine("Adjusted final performance fees", format_currency(fees.adjusted_final_fees)),
    )
    return InvoiceReport(
        title=REPORT_TITLE,
        subtitle=REPORT_SUBTITLE,
        lines=lines,
        quarterly_title=f"Quarterly Asset based fees during {invoice_year}",
        quarterly_labels=QUARTER_LABELS,
        quarterly_values=tuple(format_currency(fee) for fee in row.quarterly_fees),
        quarterly_dates=tuple(_billing_date(invoice_year, month, day) for month, day in QUARTER_BILLING_DAYS),
    )


def report_file_base_name(invoice_year: str, entity_id: str) -> str:
    return f"{FILE_TITLE} {invoice_year} #{entity_id}"
