"""Collection aggregation into per-supplier monthly salary figures.

Exposes:
- period_label(timestamp) -> "April 2023"
- aggregate_collections(events, period=None, search=None) -> List[SupplierPeriodSalary]
- salary_statement(row, deductions) -> SalaryStatement
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Optional

from core.models.canonical import CollectionEvent


# Fixed English month names so labels never depend on the process locale
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

ZERO = Decimal("0")


class PeriodKey(NamedTuple):
    supplier_id: str
    period: str


@dataclass
class SupplierPeriodSalary:
    """Salary aggregate for one supplier in one calendar month."""
    supplier_id: str
    supplier_name: str
    period: str
    total_weight: Decimal = ZERO
    gross_amount: Decimal = ZERO
    average_rate: Decimal = ZERO

    @property
    def key(self) -> PeriodKey:
        return PeriodKey(self.supplier_id, self.period)

    def add(self, event: CollectionEvent) -> None:
        self.total_weight += event.weight
        self.gross_amount += event.rate * event.weight
        self.average_rate = (
            self.gross_amount / self.total_weight if self.total_weight != 0 else ZERO
        )


def period_label(timestamp: datetime) -> str:
    """Month label for a timestamp, read from its own wall-clock date."""
    return f"{MONTH_NAMES[timestamp.month - 1]} {timestamp.year}"


def matches_period(event: CollectionEvent, period: Optional[str]) -> bool:
    """Inclusive prefix match of the event timestamp against e.g. "2023-04"."""
    if not period:
        return True
    return event.timestamp.isoformat().startswith(period.strip())


def aggregate_collections(
    events: Iterable[CollectionEvent],
    period: Optional[str] = None,
    search: Optional[str] = None,
) -> List[SupplierPeriodSalary]:
    """Group collection events by supplier and month.

    Args:
        events: Collection events in any order
        period: Optional year-month prefix filter, e.g. "2023-04"
        search: Optional case-insensitive supplier name filter

    Returns:
        One row per (supplier, month), in first-seen order. Events without
        a timestamp belong to no month and are left out.
    """
    grouped: Dict[PeriodKey, SupplierPeriodSalary] = {}

    for event in events:
        if event.timestamp is None:
            continue
        if not matches_period(event, period):
            continue
        key = PeriodKey(event.supplier_id, period_label(event.timestamp))
        row = grouped.get(key)
        if row is None:
            row = SupplierPeriodSalary(
                supplier_id=event.supplier_id,
                supplier_name=event.supplier_name,
                period=key.period,
            )
            grouped[key] = row
        row.add(event)

    rows = list(grouped.values())
    if search:
        needle = search.strip().lower()
        rows = [r for r in rows if needle in r.supplier_name.lower()]
    return rows


# =============================================================================
# Salary statements
# =============================================================================

@dataclass(frozen=True)
class SalaryDeductions:
    """Deductions applied to a period's gross amount."""
    transport: Decimal = ZERO
    advance: Decimal = ZERO
    loan: Decimal = ZERO
    tea_packets: Decimal = ZERO
    fertilizer: Decimal = ZERO
    other: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.transport + self.advance + self.loan + self.tea_packets + self.fertilizer + self.other


@dataclass
class SalaryStatement:
    salary: SupplierPeriodSalary
    deductions: SalaryDeductions = field(default_factory=SalaryDeductions)

    @property
    def total_deductions(self) -> Decimal:
        return self.deductions.total

    @property
    def net_amount(self) -> Decimal:
        return max(ZERO, self.salary.gross_amount - self.deductions.total)


def salary_statement(row: SupplierPeriodSalary, deductions: Optional[SalaryDeductions] = None) -> SalaryStatement:
    """Net salary for one period row; never negative."""
    return SalaryStatement(salary=row, deductions=deductions or SalaryDeductions())
