"""Outstanding balances derived from the supplier ledgers.

Advances count as outstanding until they are marked paid. Loans only count
while their status is on an allow-list, so unknown statuses are excluded
for loans but included for advances.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import AbstractSet, Iterable, List, Optional

from core.config import DEFAULT_LOAN_STATUSES
from core.models.canonical import Advance, CollectionEvent, Loan, Payment, Supplier, status_is

ZERO = Decimal("0")

SETTLED_ADVANCE_STATUS = "paid"


def outstanding_advance(advances: Iterable[Advance], supplier_id: str) -> Decimal:
    """Sum of the supplier's advances whose status is not "paid"."""
    return sum(
        (
            a.amount for a in advances
            if a.supplier_id == supplier_id and not status_is(a.status, SETTLED_ADVANCE_STATUS)
        ),
        ZERO,
    )


def outstanding_loan(
    loans: Iterable[Loan],
    supplier_id: str,
    statuses: AbstractSet[str] = DEFAULT_LOAN_STATUSES,
) -> Decimal:
    """Sum of the supplier's loans whose status is on the allow-list."""
    allowed = {s.lower() for s in statuses}
    return sum(
        (
            loan.amount for loan in loans
            if loan.supplier_id == supplier_id and (loan.status or "").strip().lower() in allowed
        ),
        ZERO,
    )


def gross_tea_amount(collections: Iterable[CollectionEvent], supplier_id: str) -> Decimal:
    """Lifetime sum of rate x weight over the supplier's collections."""
    return sum((c.rate * c.weight for c in collections if c.supplier_id == supplier_id), ZERO)


def net_amount(tea: Decimal, advance: Decimal, loan: Decimal, transport: Decimal) -> Decimal:
    """Net payable, clamped at zero."""
    return max(ZERO, tea - advance - loan - transport)


def total_outstanding_loans(
    loans: Iterable[Loan],
    statuses: AbstractSet[str] = DEFAULT_LOAN_STATUSES,
) -> Decimal:
    """Sum of every loan whose status is on the allow-list."""
    allowed = {s.lower() for s in statuses}
    return sum(
        (loan.amount for loan in loans if (loan.status or "").strip().lower() in allowed),
        ZERO,
    )


def pending_approvals(
    advances: Iterable[Advance],
    loans: Iterable[Loan],
    payments: Iterable[Payment],
) -> int:
    """Records awaiting approval across all three ledgers."""
    return sum(
        1
        for ledger in (advances, loans, payments)
        for record in ledger
        if status_is(record.status, "pending")
    )


@dataclass
class LedgerSnapshot:
    """Everything reconciliation reads, fetched in one pass."""
    suppliers: List[Supplier] = field(default_factory=list)
    collections: List[CollectionEvent] = field(default_factory=list)
    advances: List[Advance] = field(default_factory=list)
    loans: List[Loan] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    loan_statuses: AbstractSet[str] = DEFAULT_LOAN_STATUSES

    def outstanding_advance(self, supplier_id: str) -> Decimal:
        return outstanding_advance(self.advances, supplier_id)

    def outstanding_loan(self, supplier_id: str) -> Decimal:
        return outstanding_loan(self.loans, supplier_id, self.loan_statuses)

    def gross_tea_amount(self, supplier_id: str) -> Decimal:
        return gross_tea_amount(self.collections, supplier_id)

    def live_payment(self, payment: Payment) -> Payment:
        """The payment with its amounts recomputed from the current ledgers.

        The stored transport charge is kept; status and id are unchanged.
        """
        supplier_id = payment.supplier_id
        tea = self.gross_tea_amount(supplier_id)
        advance = self.outstanding_advance(supplier_id)
        loan = self.outstanding_loan(supplier_id)
        return payment.model_copy(update={
            "tea_amount": tea,
            "advance_amount": advance,
            "loan_amount": loan,
            "net_amount": net_amount(tea, advance, loan, payment.transport_charge),
        })

    def payments_for(self, supplier_id: str) -> List[Payment]:
        return [p for p in self.payments if p.supplier_id == supplier_id]

    def find_payment(self, supplier_id: str) -> Optional[Payment]:
        """First payment recorded for the supplier."""
        return next((p for p in self.payments if p.supplier_id == supplier_id), None)
