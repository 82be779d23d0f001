"""Derived figures for the dashboard pages.

Every function here is a pure function of already-loaded records; the views
call them again after each load or mutation.
"""

from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, TypeVar

from core.models.canonical import (
    CollectionEvent,
    CollectionStat,
    Driver,
    Payment,
    Product,
)
from models.api_responses import (
    CollectionBar,
    FinanceSummary,
    InventoryCategory,
    InventoryItem,
    LowStockAlert,
    SalaryRow,
)
from reconciliation.aggregator import SalaryDeductions, aggregate_collections, salary_statement
from reconciliation.ledgers import LedgerSnapshot, pending_approvals, total_outstanding_loans

ZERO = Decimal("0")

LOW_STOCK_BAGS = 20
FERTILIZER_LOW_STOCK_BAGS = 10
WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
INACTIVE_DRIVER_STATUSES = frozenset({"inactive", "offline"})

RecordT = TypeVar("RecordT")


def filter_by_name(records: Iterable[RecordT], search: Optional[str], attr: str = "supplier_name") -> List[RecordT]:
    """Case-insensitive substring filter on a name attribute."""
    records = list(records)
    if not search or not search.strip():
        return records
    needle = search.strip().lower()
    return [r for r in records if needle in (getattr(r, attr, "") or "").lower()]


# =============================================================================
# Dashboard
# =============================================================================

def count_active_drivers(drivers: Iterable[Driver]) -> int:
    return sum(
        1 for d in drivers
        if (d.status or "").strip().lower() not in INACTIVE_DRIVER_STATUSES
    )


def fertilizer_stock_value(products: Iterable[Product]) -> Decimal:
    """Rate x stock summed over every product that is not a tea packet."""
    return sum(
        (p.rate_per_bag * p.stock_bags for p in products if not p.is_tea_packet),
        ZERO,
    )


def low_stock_alerts(products: Iterable[Product], threshold: int = LOW_STOCK_BAGS) -> List[LowStockAlert]:
    return [
        LowStockAlert(product_id=p.product_id, name=p.name, stock_bags=p.stock_bags)
        for p in products
        if p.stock_bags < threshold
    ]


def count_exact_status(records: Iterable, status: str) -> int:
    """Count records whose status equals `status` exactly (dashboard cards)."""
    return sum(1 for r in records if r.status == status)


def weekly_collection(stats: Sequence[CollectionStat], days: int = 7) -> List[CollectionBar]:
    """Chart rows for the most recent `days` statistics, oldest first."""
    recent = sorted(stats, key=lambda s: s.date)[-days:]
    peak = max((s.total_weight for s in recent), default=ZERO)
    return [
        CollectionBar(
            date=s.date,
            label=WEEKDAY_LABELS[s.date.weekday()],
            total_weight=s.total_weight,
            ratio=float(s.total_weight / peak) if peak > 0 else 0.0,
        )
        for s in recent
    ]


def total_collected_weight(collections: Iterable[CollectionEvent]) -> Decimal:
    return sum((c.weight for c in collections), ZERO)


# =============================================================================
# Inventory
# =============================================================================

def tea_packet_status(stock_bags: int) -> str:
    return "In Stock" if stock_bags > 0 else "Out of Stock"


def fertilizer_status(stock_bags: int) -> str:
    return "In Stock" if stock_bags > FERTILIZER_LOW_STOCK_BAGS else "Low Stock"


def _category(products: Iterable[Product], status_for, search: Optional[str]) -> InventoryCategory:
    items = [
        InventoryItem(
            id=p.product_id,
            name=p.name,
            price=p.rate_per_bag,
            quantity=p.stock_bags,
            status=status_for(p.stock_bags),
        )
        for p in filter_by_name(products, search, attr="name")
    ]
    return InventoryCategory(
        items=items,
        total_quantity=sum(i.quantity for i in items),
        total_value=sum((i.price * i.quantity for i in items), ZERO),
    )


def inventory_summary(
    products: Sequence[Product],
    tea_search: Optional[str] = None,
    fertilizer_search: Optional[str] = None,
):
    """Split products into tea packets and fertilizers.

    Returns:
        (tea packets, fertilizers, low stock count) where the count covers
        every item not "In Stock" in either category, before searching.
    """
    tea = [p for p in products if p.is_tea_packet]
    fertilizer = [p for p in products if not p.is_tea_packet]

    low_stock = sum(1 for p in tea if tea_packet_status(p.stock_bags) != "In Stock")
    low_stock += sum(1 for p in fertilizer if fertilizer_status(p.stock_bags) != "In Stock")

    return (
        _category(tea, tea_packet_status, tea_search),
        _category(fertilizer, fertilizer_status, fertilizer_search),
        low_stock,
    )


# =============================================================================
# Drivers
# =============================================================================

def routes_covered(drivers: Iterable[Driver]) -> int:
    return len({d.route.strip().lower() for d in drivers if d.route and d.route.strip()})


# =============================================================================
# Finances
# =============================================================================

def live_payments(snapshot: LedgerSnapshot) -> List[Payment]:
    """Payments table rows with amounts recomputed from the current ledgers."""
    return [snapshot.live_payment(p) for p in snapshot.payments]


def finance_summary(snapshot: LedgerSnapshot) -> FinanceSummary:
    """Summary cards over the unfiltered ledgers.

    The loans card uses the same status allow-list as the outstanding loan
    figure, and the payments card sums each payment's live net amount
    rather than the stored one.
    """
    return FinanceSummary(
        total_advances=sum((a.amount for a in snapshot.advances), ZERO),
        total_loans=total_outstanding_loans(snapshot.loans, snapshot.loan_statuses),
        total_payments=sum((p.net_amount for p in live_payments(snapshot)), ZERO),
        pending_approvals=pending_approvals(snapshot.advances, snapshot.loans, snapshot.payments),
    )


# =============================================================================
# Salary Calculations
# =============================================================================

def salary_rows(
    collections: Iterable[CollectionEvent],
    month: Optional[str] = None,
    search: Optional[str] = None,
    deductions: Optional[SalaryDeductions] = None,
) -> List[SalaryRow]:
    """One row per supplier and month, each with the same deductions applied."""
    rows = []
    for salary in aggregate_collections(collections, period=month, search=search):
        statement = salary_statement(salary, deductions)
        rows.append(
            SalaryRow(
                supplier_id=salary.supplier_id,
                supplier_name=salary.supplier_name,
                period=salary.period,
                total_weight=salary.total_weight,
                average_rate=salary.average_rate,
                gross_amount=salary.gross_amount,
                total_deductions=statement.total_deductions,
                net_amount=statement.net_amount,
            )
        )
    return rows
