"""ABOUTME: Invoice input rows and the performance fee calculation
ABOUTME: Parses spreadsheet rows permissively and computes capped performance fees per entity"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

REQUIRED_COLUMNS = (
    "Entity ID",
    "Entity Name",
    "Group Name",
    "Entity Path",
    "Inception Date",
    "Inception Benchmark",
    "Year Benchmark",
    "Performance Fee Rate",
    "Fee Cap",
    "Inception Performance",
    "Period Ending Market Value",
    "Period Performance",
    "Period Beginning Market Value",
)

OPTIONAL_COLUMNS = ("Q1 Fees", "Q2 Fees", "Q3 Fees", "Q4 Fees", "AccountsPayingFees")

_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_number(value: Any) -> float:
    """Read a numeric cell the tolerant way: anything unreadable counts as 0.

    Strings are read up to the first character that cannot be part of a number,
    so "7.5%" gives 7.5 and "abc" gives 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        number = float(value)
    else:
        match = _NUMBER_PREFIX.match(str(value).strip())
        if not match:
            return 0.0
        number = float(match.group(0))
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return number


def parse_text(value: Any) -> str:
    """Read a text cell; missing cells become the empty string."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(slots=True, kw_only=True)
class InvoiceRow:
    entity_id: str
    entity_name: str
    group_name: str
    entity_path: str
    inception_date: str
    inception_benchmark: float
    year_benchmark: float
    performance_fee_rate: float
    fee_cap: float
    inception_performance: float
    period_ending_market_value: float
    period_performance: float
    period_beginning_market_value: float
    q1_fees: float = 0.0
    q2_fees: float = 0.0
    q3_fees: float = 0.0
    q4_fees: float = 0.0
    accounts_paying_fees: str = ""

    @classmethod
    def from_cells(cls, headers: Sequence[str], cells: Sequence[Any]) -> "InvoiceRow":
        """Build a row from a header list and the matching cell values."""

        def cell(column: str) -> Any:
            if column not in headers:
                return None
            index = headers.index(column)
            return cells[index] if index < len(cells) else None

        return cls(
            entity_id=parse_text(cell("Entity ID")),
            entity_name=parse_text(cell("Entity Name")),
            group_name=parse_text(cell("Group Name")),
            entity_path=parse_text(cell("Entity Path")),
            inception_date=parse_text(cell("Inception Date")),
            inception_benchmark=parse_number(cell("Inception Benchmark")),
            year_benchmark=parse_number(cell("Year Benchmark")),
            performance_fee_rate=parse_number(cell("Performance Fee Rate")),
            fee_cap=parse_number(cell("Fee Cap")),
            inception_performance=parse_number(cell("Inception Performance")),
            period_ending_market_value=parse_number(cell("Period Ending Market Value")),
            period_performance=parse_number(cell("Period Performance")),
            period_beginning_market_value=parse_number(cell("Period Beginning Market Value")),
            q1_fees=parse_number(cell("Q1 Fees")),
            q2_fees=parse_number(cell("Q2 Fees")),
            q3_fees=parse_number(cell("Q3 Fees")),
            q4_fees=parse_number(cell("Q4 Fees")),
            accounts_paying_fees=parse_text(cell("AccountsPayingFees")),
        )

    @property
    def is_billable(self) -> bool:
        """Rows without an entity path are kept at validation time but never invoiced."""
        return bool(self.entity_path.strip())

    @property
    def quarterly_fees(self) -> tuple[float, float, float, float]:
        return (self.q1_fees, self.q2_fees, self.q3_fees, self.q4_fees)

    @property
    def quarterly_fees_total(self) -> float:
        return sum(self.quarterly_fees)


@dataclass(frozen=True, slots=True)
class FeeCalculation:
    excess_return: float
    performance_fee: float
    total_fees: float
    adjusted_total_fees: float
    adjusted_final_fees: float


def compute_fees(row: InvoiceRow) -> FeeCalculation:
    """Compute the performance fee for one entity.

    Percentages are in "percent" units (8 means 8%). No rounding happens here,
    only when the figures are rendered. Quarterly fees already billed are shown
    on the report but are not subtracted from the total.
    """
    excess_return = max(row.inception_performance / 100 - row.inception_benchmark / 100, 0)

    performance_fee = 0.0
    if row.inception_performance > row.inception_benchmark:
        performance_fee = excess_return * row.performance_fee_rate * row.period_ending_market_value / 100 / 100

    total_fees = performance_fee
    # the cap only ever lowers the fee
    adjusted_total_fees = min(row.fee_cap * row.period_ending_market_value / 100, total_fees)

    return FeeCalculation(
        excess_return=excess_return,
        performance_fee=performance_fee,
        total_fees=total_fees,
        adjusted_total_fees=adjusted_total_fees,
        adjusted_final_fees=adjusted_total_fees,
    )
