"""Finance operations: advances, loans, payments and payment sync.

Inputs are validated before anything is sent; a rejected input raises
`ValidationFailure` listing every problem found. Single-record writes let
backend errors propagate so the operator sees the message. The batch
operations (advance for all suppliers, payment sync) log per-supplier
failures and carry on.
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional

from connectors.backend.client import BackendApiError
from connectors.backend.gateway import FactoryBackend
from core.config import Settings, get_settings
from core.errors import ValidationFailure
from core.models.canonical import Advance, Ledger, LedgerStatus, Loan, Payment, Supplier
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import record_batch_outcome, record_batch_started
from models.api_responses import BatchAdvanceResponse
from reconciliation.engine import PaymentReconciler, SyncReport
from reconciliation.ledgers import net_amount

logger = get_logger(__name__)

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")

ZERO = Decimal("0")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _supplier_name(suppliers: Optional[List[Supplier]], supplier_id: str) -> str:
    for s in suppliers or []:
        if s.supplier_id == supplier_id:
            return s.full_name
    return ""


# =============================================================================
# Validation
# =============================================================================

def validate_advance(supplier_id: Optional[str], amount: Optional[Decimal], month: Optional[str], require_supplier: bool = True) -> None:
    errors = []
    if require_supplier and not (supplier_id or "").strip():
        errors.append("Supplier is required")
    if amount is None or amount <= 0:
        errors.append("Amount must be greater than 0")
    if not month or not MONTH_PATTERN.match(month.strip()):
        errors.append("Month is required (YYYY-MM)")
    if errors:
        raise ValidationFailure(errors)


def validate_loan(
    supplier_id: Optional[str],
    amount: Optional[Decimal],
    duration_months: Optional[int],
    purpose: Optional[str],
    monthly_amount: Optional[Decimal],
    due_date: Optional[date],
) -> None:
    errors = []
    if not (supplier_id or "").strip():
        errors.append("Supplier is required")
    if amount is None or amount <= 0:
        errors.append("Loan amount must be greater than 0")
    if duration_months is None or duration_months <= 0:
        errors.append("Duration must be greater than 0")
    if not (purpose or "").strip():
        errors.append("Purpose of loan is required")
    if monthly_amount is None or monthly_amount <= 0:
        errors.append("Monthly amount must be greater than 0")
    if due_date is None:
        errors.append("Due date is required")
    if errors:
        raise ValidationFailure(errors)


def validate_payment_amounts(supplier_id: Optional[str], **amounts: Optional[Decimal]) -> None:
    errors = []
    if not (supplier_id or "").strip():
        errors.append("Supplier is required")
    for name, value in amounts.items():
        if value is not None and value < 0:
            errors.append(f"{name.replace('_', ' ').capitalize()} cannot be negative")
    if errors:
        raise ValidationFailure(errors)


# =============================================================================
# Service
# =============================================================================

class FinanceService:
    """Finance page operations against the factory backend.

    Usage:
        service = FinanceService(backend)
        await service.create_advance("S001", Decimal("5000"), "2024-05")
        report = await service.sync_payments()
    """

    def __init__(
        self,
        backend: FactoryBackend,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend
        self.settings = settings or get_settings()
        self.clock = clock

    # =========================================================================
    # Advances
    # =========================================================================

    async def create_advance(
        self,
        supplier_id: str,
        amount: Decimal,
        month: str,
        suppliers: Optional[List[Supplier]] = None,
    ) -> Advance:
        """Record a Pending advance for one supplier.

        Raises:
            ValidationFailure: Amount not positive or month missing
            BackendApiError: If the backend rejects the advance
        """
        validate_advance(supplier_id, amount, month)
        advance = Advance(
            supplier_id=supplier_id.strip(),
            supplier_name=_supplier_name(suppliers, supplier_id.strip()),
            amount=amount,
            date=self.clock(),
            status=LedgerStatus.PENDING.value,
            month=month.strip(),
        )
        await self.backend.create_advance(advance)
        logger.info(f"Advance of {amount} for {month} created for {advance.supplier_id}")
        return advance

    async def create_advance_for_all(self, amount: Decimal, month: str) -> BatchAdvanceResponse:
        """Create the same advance for every supplier, one at a time.

        A supplier whose create fails is logged and skipped. The advance
        list is re-read at the end.

        Raises:
            ValidationFailure: Amount not positive or month missing
            BackendApiError: If the supplier list cannot be read
        """
        validate_advance(None, amount, month, require_supplier=False)
        month = month.strip()
        result = BatchAdvanceResponse(month=month, amount=amount)

        with with_correlation(operation="advance_for_all", ledger=Ledger.ADVANCE.value):
            suppliers = await self.backend.list_suppliers()
            record_batch_started("advance_for_all")

            for supplier in suppliers:
                advance = Advance(
                    supplier_id=supplier.supplier_id,
                    supplier_name=supplier.full_name,
                    amount=amount,
                    date=self.clock(),
                    status=LedgerStatus.PENDING.value,
                    month=month,
                )
                try:
                    await self.backend.create_advance(advance)
                except BackendApiError as e:
                    logger.error(f"Advance for {supplier.supplier_id} failed: {e.message}")
                    result.failed[supplier.supplier_id] = e.message
                    record_batch_outcome("advance_for_all", "failed")
                    continue
                result.created.append(supplier.supplier_id)
                record_batch_outcome("advance_for_all", "created")

            try:
                result.advances = await self.backend.list_advances()
            except BackendApiError as e:
                logger.error(f"Could not refresh advances: {e.message}")

            logger.info(
                f"Advance for all suppliers: {len(result.created)} created, {len(result.failed)} failed"
            )
        return result

    # =========================================================================
    # Loans
    # =========================================================================

    async def create_loan(
        self,
        supplier_id: str,
        amount: Decimal,
        duration_months: int,
        purpose: str,
        monthly_amount: Decimal,
        due_date: Optional[date],
        status: Optional[str] = None,
        suppliers: Optional[List[Supplier]] = None,
    ) -> Loan:
        """Record a loan for one supplier.

        Raises:
            ValidationFailure: Any required field missing or not positive
            BackendApiError: If the backend rejects the loan
        """
        validate_loan(supplier_id, amount, duration_months, purpose, monthly_amount, due_date)
        loan = Loan(
            supplier_id=supplier_id.strip(),
            supplier_name=_supplier_name(suppliers, supplier_id.strip()),
            amount=amount,
            duration_months=duration_months,
            purpose=purpose.strip(),
            monthly_amount=monthly_amount,
            due_date=due_date,
            status=(status or "").strip() or LedgerStatus.PENDING.value,
        )
        await self.backend.create_loan(loan)
        logger.info(f"Loan of {amount} created for {loan.supplier_id}")
        return loan

    # =========================================================================
    # Payments
    # =========================================================================

    async def create_payment(
        self,
        supplier_id: str,
        loan_amount: Decimal = ZERO,
        advance_amount: Decimal = ZERO,
        tea_amount: Decimal = ZERO,
        transport_charge: Decimal = ZERO,
        net: Optional[Decimal] = None,
        when: Optional[datetime] = None,
        status: Optional[str] = None,
        suppliers: Optional[List[Supplier]] = None,
    ) -> Payment:
        """Record a manual payment.

        The net amount is derived from the other amounts unless given.

        Raises:
            ValidationFailure: Supplier missing or an amount negative
            BackendApiError: If the backend rejects the payment
        """
        validate_payment_amounts(
            supplier_id,
            loan_amount=loan_amount,
            advance_amount=advance_amount,
            tea_amount=tea_amount,
            transport_charge=transport_charge,
            net_amount=net,
        )
        if net is None:
            net = net_amount(tea_amount, advance_amount, loan_amount, transport_charge)

        payment = Payment(
            supplier_id=supplier_id.strip(),
            supplier_name=_supplier_name(suppliers, supplier_id.strip()),
            loan_amount=loan_amount,
            advance_amount=advance_amount,
            tea_amount=tea_amount,
            transport_charge=transport_charge,
            net_amount=net,
            date=when or self.clock(),
            status=(status or "").strip() or LedgerStatus.PENDING.value,
        )
        await self.backend.create_payment(payment)
        logger.info(f"Payment of {net} created for {payment.supplier_id}")
        return payment

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Payment for the receipt view; `None` when it does not exist."""
        return await self.backend.get_payment(payment_id)

    async def sync_payments(self, transport_charge: Optional[Decimal] = None) -> SyncReport:
        """Recompute every supplier's payment from the ledgers and upsert it.

        Raises:
            ValidationFailure: Negative transport charge
            BackendApiError: If the ledgers cannot be loaded
        """
        if transport_charge is not None and transport_charge < 0:
            raise ValidationFailure(["Transport charge cannot be negative"])
        reconciler = PaymentReconciler.from_settings(self.backend, self.settings)
        return await reconciler.reconcile_all(transport_charge=transport_charge)

    # =========================================================================
    # Any Ledger
    # =========================================================================

    async def update_status(self, ledger: Ledger, record_id: str, status: str) -> None:
        """Set a record's status; any value is accepted and sent verbatim.

        Raises:
            ValidationFailure: Record id or status blank
            BackendApiError: If the backend rejects the change
        """
        errors = []
        if not (record_id or "").strip():
            errors.append("Record id is required")
        if not (status or "").strip():
            errors.append("Status is required")
        if errors:
            raise ValidationFailure(errors)

        with with_correlation(ledger=ledger.value):
            await self.backend.update_status(ledger, record_id, status)
            logger.info(f"{ledger.value.capitalize()} {record_id} status set to {status}")

    async def delete(self, ledger: Ledger, record_id: str) -> None:
        """
        Raises:
            BackendApiError: If the backend refuses the delete
        """
        with with_correlation(ledger=ledger.value):
            await self.backend.delete_record(ledger, record_id)
            logger.info(f"{ledger.value.capitalize()} {record_id} deleted")

    async def delete_advance(self, record_id: str) -> None:
        await self.delete(Ledger.ADVANCE, record_id)

    async def delete_loan(self, record_id: str) -> None:
        await self.delete(Ledger.LOAN, record_id)

    async def delete_payment(self, record_id: str) -> None:
        await self.delete(Ledger.PAYMENT, record_id)
