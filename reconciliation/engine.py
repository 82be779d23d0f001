"""Payment reconciliation engine.

Keeps each supplier's payment record in line with the ledgers it is derived
from:

    net = max(0, gross tea amount - outstanding advance - outstanding loan - transport charge)

Exposes:
- PaymentReconciler.reconcile(supplier, snapshot) -> SupplierSyncResult
- PaymentReconciler.reconcile_all() -> SyncReport
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import AbstractSet, Callable, Dict, List, Optional

from connectors.backend.client import BackendApiError
from connectors.backend.gateway import FactoryBackend
from core.config import DEFAULT_LOAN_STATUSES, DEFAULT_TRANSPORT_CHARGE
from core.models.canonical import LedgerStatus, Payment, Supplier
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import (
    record_batch_outcome,
    record_batch_started,
    record_processing_time,
)
from reconciliation.ledgers import LedgerSnapshot, net_amount

logger = get_logger(__name__)


# =============================================================================
# Data Structures
# =============================================================================

class SyncOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PaymentComputation:
    """The amounts a supplier's payment record should carry."""
    supplier_id: str
    supplier_name: str
    tea_amount: Decimal
    advance_amount: Decimal
    loan_amount: Decimal
    transport_charge: Decimal
    net_amount: Decimal

    def to_payment(self, status: str, when: datetime, payment_id: Optional[str] = None) -> Payment:
        return Payment(
            id=payment_id,
            supplier_id=self.supplier_id,
            supplier_name=self.supplier_name,
            loan_amount=self.loan_amount,
            advance_amount=self.advance_amount,
            tea_amount=self.tea_amount,
            transport_charge=self.transport_charge,
            net_amount=self.net_amount,
            date=when,
            status=status,
        )

    def to_dict(self) -> Dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "tea_amount": str(self.tea_amount),
            "advance_amount": str(self.advance_amount),
            "loan_amount": str(self.loan_amount),
            "transport_charge": str(self.transport_charge),
            "net_amount": str(self.net_amount),
        }


@dataclass
class SupplierSyncResult:
    """Result of reconciling one supplier."""
    supplier_id: str
    outcome: SyncOutcome
    computation: Optional[PaymentComputation] = None
    payment_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "supplier_id": self.supplier_id,
            "outcome": self.outcome.value,
            "payment_id": self.payment_id,
            "error": self.error,
            "computation": self.computation.to_dict() if self.computation else None,
        }


@dataclass
class SyncReport:
    """Result of one reconcile-all run."""
    batch_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[SupplierSyncResult] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    payments_refreshed: bool = False

    def count(self, outcome: SyncOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)

    @property
    def failed_suppliers(self) -> List[str]:
        return [r.supplier_id for r in self.results if r.outcome == SyncOutcome.FAILED]

    def to_dict(self) -> Dict:
        return {
            "batch_id": self.batch_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "summary": {
                "suppliers": len(self.results),
                "created": self.count(SyncOutcome.CREATED),
                "updated": self.count(SyncOutcome.UPDATED),
                "skipped": self.count(SyncOutcome.SKIPPED),
                "failed": self.count(SyncOutcome.FAILED),
            },
            "payments_refreshed": self.payments_refreshed,
            "results": [r.to_dict() for r in self.results],
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _created_payment(response, sent: Payment) -> Payment:
    """The record just created, carrying the backend's id when it returned one."""
    if isinstance(response, dict):
        try:
            created = Payment.model_validate(response)
            if created.id:
                return created
        except ValueError:
            pass
        for key in ("id", "PaymentsID", "insertId"):
            if response.get(key) is not None:
                return sent.model_copy(update={"id": str(response[key])})
    return sent


# =============================================================================
# Reconciler
# =============================================================================

class PaymentReconciler:
    """Recomputes supplier payments and upserts them in the backend.

    Usage:
        reconciler = PaymentReconciler(backend)
        report = await reconciler.reconcile_all()
    """

    def __init__(
        self,
        backend: FactoryBackend,
        transport_charge: Decimal = DEFAULT_TRANSPORT_CHARGE,
        loan_statuses: AbstractSet[str] = DEFAULT_LOAN_STATUSES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.backend = backend
        self.transport_charge = transport_charge
        self.loan_statuses = frozenset(s.lower() for s in loan_statuses)
        self.clock = clock

    @classmethod
    def from_settings(cls, backend: FactoryBackend, settings) -> "PaymentReconciler":
        return cls(
            backend,
            transport_charge=settings.transport_charge,
            loan_statuses=settings.outstanding_loan_statuses,
        )

    async def load_snapshot(self) -> LedgerSnapshot:
        """Fetch every ledger reconciliation reads.

        Raises:
            BackendApiError: If any ledger cannot be read
        """
        return LedgerSnapshot(
            suppliers=await self.backend.list_suppliers(),
            collections=await self.backend.list_collections(),
            advances=await self.backend.list_advances(),
            loans=await self.backend.list_loans(),
            payments=await self.backend.list_payments(),
            loan_statuses=self.loan_statuses,
        )

    def compute(
        self,
        snapshot: LedgerSnapshot,
        supplier: Supplier,
        transport_charge: Optional[Decimal] = None,
    ) -> PaymentComputation:
        """Derive the payment amounts for one supplier from the snapshot."""
        tea = snapshot.gross_tea_amount(supplier.supplier_id)
        advance = snapshot.outstanding_advance(supplier.supplier_id)
        loan = snapshot.outstanding_loan(supplier.supplier_id)
        transport = self.transport_charge if transport_charge is None else transport_charge

        return PaymentComputation(
            supplier_id=supplier.supplier_id,
            supplier_name=supplier.full_name,
            tea_amount=tea,
            advance_amount=advance,
            loan_amount=loan,
            transport_charge=transport,
            net_amount=net_amount(tea, advance, loan, transport),
        )

    async def reconcile(
        self,
        supplier: Supplier,
        snapshot: LedgerSnapshot,
        transport_charge: Optional[Decimal] = None,
    ) -> SupplierSyncResult:
        """Create or update the supplier's payment to match its ledgers.

        An existing payment keeps its status; a new one starts as Pending.
        A payment created here is added to the snapshot so a later call
        with the same snapshot updates it instead of creating another.

        Raises:
            BackendApiError: If the write fails
        """
        computation = self.compute(snapshot, supplier, transport_charge)
        supplier_id = supplier.supplier_id

        matches = snapshot.payments_for(supplier_id)
        if len(matches) > 1:
            logger.warning(
                f"Supplier {supplier_id} has {len(matches)} payment records; updating the first",
                extra_fields={"payment_ids": [p.id for p in matches]},
            )
        existing = matches[0] if matches else None

        if existing is not None and not existing.id:
            logger.warning(f"Payment for {supplier_id} was created without a returned id; refresh before updating")
            return SupplierSyncResult(
                supplier_id=supplier_id,
                outcome=SyncOutcome.SKIPPED,
                computation=computation,
                error="Payment id unknown until the payment list is refreshed",
            )

        now = self.clock()

        if existing is not None:
            payment = computation.to_payment(
                status=existing.status or LedgerStatus.PENDING.value,
                when=now,
                payment_id=existing.id,
            )
            await self.backend.update_payment(existing.id, payment)
            snapshot.payments = [payment if p is existing else p for p in snapshot.payments]
            logger.info(
                f"Payment {existing.id} updated for {supplier_id}: net {computation.net_amount}",
                extra_fields=computation.to_dict(),
            )
            return SupplierSyncResult(
                supplier_id=supplier_id,
                outcome=SyncOutcome.UPDATED,
                computation=computation,
                payment_id=existing.id,
            )

        payment = computation.to_payment(status=LedgerStatus.PENDING.value, when=now)
        response = await self.backend.create_payment(payment)
        created = _created_payment(response, payment)
        snapshot.payments = snapshot.payments + [created]
        logger.info(
            f"Payment created for {supplier_id}: net {computation.net_amount}",
            extra_fields=computation.to_dict(),
        )
        return SupplierSyncResult(
            supplier_id=supplier_id,
            outcome=SyncOutcome.CREATED,
            computation=computation,
            payment_id=created.id,
        )

    async def reconcile_all(
        self,
        suppliers: Optional[List[Supplier]] = None,
        transport_charge: Optional[Decimal] = None,
        snapshot: Optional[LedgerSnapshot] = None,
    ) -> SyncReport:
        """Reconcile every supplier, one at a time, then re-read payments.

        A failed write is logged and recorded in the report; the remaining
        suppliers are still processed. Nothing is retried.

        Args:
            suppliers: Suppliers to process (default: all suppliers in the snapshot)
            transport_charge: Override for the configured transport charge
            snapshot: Ledgers already loaded by the caller

        Raises:
            BackendApiError: If the ledgers cannot be loaded (nothing is written)
        """
        batch_id = f"sync-{uuid.uuid4().hex[:8]}"
        report = SyncReport(batch_id=batch_id, started_at=self.clock())
        started = time.monotonic()

        with with_correlation(batch_id=batch_id, operation="sync_payments"):
            record_batch_started("sync_payments")

            if snapshot is None:
                snapshot = await self.load_snapshot()
            previous_payments = list(snapshot.payments)

            for supplier in suppliers if suppliers is not None else snapshot.suppliers:
                with with_correlation(supplier_id=supplier.supplier_id):
                    try:
                        result = await self.reconcile(supplier, snapshot, transport_charge)
                    except BackendApiError as e:
                        logger.error(f"Payment sync failed for {supplier.supplier_id}: {e.message}")
                        result = SupplierSyncResult(
                            supplier_id=supplier.supplier_id,
                            outcome=SyncOutcome.FAILED,
                            error=e.message,
                        )
                report.results.append(result)
                if result.outcome != SyncOutcome.SKIPPED:
                    record_batch_outcome("sync_payments", result.outcome.value)

            try:
                report.payments = await self.backend.list_payments()
                report.payments_refreshed = True
            except BackendApiError as e:
                logger.error(f"Could not refresh payments after sync, keeping previous list: {e.message}")
                report.payments = previous_payments

            report.finished_at = self.clock()
            duration_ms = (time.monotonic() - started) * 1000
            record_processing_time("sync_payments", duration_ms)
            logger.info(
                f"Payment sync finished: {report.count(SyncOutcome.CREATED)} created, "
                f"{report.count(SyncOutcome.UPDATED)} updated, {report.count(SyncOutcome.FAILED)} failed",
                extra_fields={"duration_ms": round(duration_ms, 1)},
            )

        return report
