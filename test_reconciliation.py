"""
Payment Reconciliation Tests

Validates the net payable derivation and the payment upsert:
1. Outstanding advance excludes "paid" in any case; everything else counts
2. Outstanding loan only counts allow-listed statuses
3. Net amount is never negative
4. Reconcile creates a Pending payment once, then updates that same record
5. Reconcile-all isolates per-supplier failures and refreshes the payment list
"""

import asyncio
import random
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import FakeBackend, advance, event, loan, payment, supplier
from connectors.backend.client import BackendApiError, BackendConnectionError
from reconciliation.engine import PaymentReconciler, SyncOutcome
from reconciliation.ledgers import (
    LedgerSnapshot,
    net_amount,
    outstanding_advance,
    outstanding_loan,
    pending_approvals,
    total_outstanding_loans,
)

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_reconciler(backend, **kwargs) -> PaymentReconciler:
    return PaymentReconciler(backend, clock=lambda: FIXED_NOW, **kwargs)


# =============================================================================
# OUTSTANDING BALANCES
# =============================================================================

class TestOutstandingAdvance:

    def test_paid_excluded_in_any_case(self):
        advances = [
            advance("S001", 1000, "Paid"),
            advance("S001", 200, "PAID"),
            advance("S001", 30, "paid"),
            advance("S001", 4, "Pending"),
        ]
        assert outstanding_advance(advances, "S001") == Decimal("4")

    def test_other_statuses_included(self):
        advances = [
            advance("S001", 100, "Pending"),
            advance("S001", 200, "Transferred"),
            advance("S001", 300, "Transfered"),
            advance("S001", 400, "Approved"),
            advance("S001", 500, ""),
            advance("S002", 999, "Pending"),
        ]
        assert outstanding_advance(advances, "S001") == Decimal("1500")

    def test_no_advances(self):
        assert outstanding_advance([], "S001") == 0


class TestOutstandingLoan:

    def test_allow_listed_statuses_included(self):
        loans = [
            loan("S001", 100, "Active"),
            loan("S001", 200, "APPROVED"),
            loan("S001", 300, "pending"),
        ]
        assert outstanding_loan(loans, "S001") == Decimal("600")

    def test_rejected_and_completed_excluded(self):
        loans = [
            loan("S001", 100, "Rejected"),
            loan("S001", 200, "Completed"),
            loan("S001", 300, "Paid"),
            loan("S001", 400, "Something new"),
            loan("S001", 50, "Active"),
        ]
        assert outstanding_loan(loans, "S001") == Decimal("50")

    def test_configurable_allow_list(self):
        loans = [loan("S001", 100, "Active"), loan("S001", 200, "Pending")]
        assert outstanding_loan(loans, "S001", statuses={"Active"}) == Decimal("100")

    def test_total_across_suppliers_uses_allow_list(self):
        loans = [
            loan("S001", 1000, "Active"),
            loan("S002", 5000, "Rejected"),
            loan("S003", 7000, "Completed"),
            loan("S003", 250, "PENDING"),
        ]
        assert total_outstanding_loans(loans) == Decimal("1250")
        assert total_outstanding_loans(loans, statuses={"rejected"}) == Decimal("5000")


class TestNetAmount:

    def test_example_positive(self):
        assert net_amount(Decimal("8000"), Decimal("2000"), Decimal("1000"), Decimal("100")) == Decimal("4900")

    def test_example_clamped(self):
        assert net_amount(Decimal("500"), Decimal("400"), Decimal("200"), Decimal("100")) == 0

    def test_never_negative(self):
        rng = random.Random(11)
        for _ in range(500):
            tea, adv, ln, transport = (Decimal(rng.randint(0, 100000)) / 100 for _ in range(4))
            result = net_amount(tea, adv, ln, transport)
            assert result >= 0
            if adv + ln + transport >= tea:
                assert result == 0

    def test_pending_approvals_across_ledgers(self):
        count = pending_approvals(
            [advance("S001", 1, "Pending"), advance("S001", 1, "Paid")],
            [loan("S001", 1, "PENDING"), loan("S001", 1, "Active")],
            [payment("S001", status="pending"), payment("S002", status="Approved")],
        )
        assert count == 3

    def test_live_payment_recomputes_from_ledgers(self):
        snapshot = LedgerSnapshot(
            collections=[event("S001", 50, 100, "2023-04-03"), event("S001", 60, 50, "2023-05-20")],
            advances=[advance("S001", 2000, "Pending"), advance("S001", 900, "Paid")],
            loans=[loan("S001", 1000, "Active"), loan("S001", 5000, "Rejected")],
        )
        stored = payment("S001", id="9", status="Approved", net_amount=1200, transport_charge=100)

        live = snapshot.live_payment(stored)

        assert live.tea_amount == Decimal("8000")
        assert live.advance_amount == Decimal("2000")
        assert live.loan_amount == Decimal("1000")
        assert live.net_amount == Decimal("4900")
        assert (live.id, live.status, live.transport_charge) == ("9", "Approved", Decimal("100"))


# =============================================================================
# RECONCILE
# =============================================================================

class TestReconcile:

    def _snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            suppliers=[supplier("S001", "Nimal Perera")],
            collections=[
                event("S001", 50, 100, "2023-04-03"),
                event("S001", 60, 50, "2023-05-20"),
            ],
            advances=[advance("S001", 2000), advance("S001", 700, "Paid")],
            loans=[loan("S001", 1000, "Approved"), loan("S001", 5000, "Rejected")],
        )

    def test_creates_pending_payment_with_derived_amounts(self):
        backend = FakeBackend()
        reconciler = make_reconciler(backend)
        snapshot = self._snapshot()

        result = asyncio.run(reconciler.reconcile(snapshot.suppliers[0], snapshot))

        assert result.outcome == SyncOutcome.CREATED
        created = backend.calls[-1][1]
        assert created.status == "Pending"
        assert created.tea_amount == Decimal("8000")
        assert created.advance_amount == Decimal("2000")
        assert created.loan_amount == Decimal("1000")
        assert created.transport_charge == Decimal("100")
        assert created.net_amount == Decimal("4900")
        assert created.date == FIXED_NOW
        assert created.supplier_name == "Nimal Perera"

    def test_rerun_updates_the_same_record(self):
        backend = FakeBackend()
        reconciler = make_reconciler(backend)
        snapshot = self._snapshot()

        first = asyncio.run(reconciler.reconcile(snapshot.suppliers[0], snapshot))
        second = asyncio.run(reconciler.reconcile(snapshot.suppliers[0], snapshot))

        assert first.outcome == SyncOutcome.CREATED
        assert second.outcome == SyncOutcome.UPDATED
        assert second.payment_id == first.payment_id
        assert len(backend.payments) == 1
        assert [c[0] for c in backend.writes] == ["create_payment", "update_payment"]

    def test_update_preserves_status(self):
        backend = FakeBackend()
        reconciler = make_reconciler(backend)
        snapshot = self._snapshot()
        snapshot.payments = [payment("S001", id="77", status="Approved", net_amount=1)]

        result = asyncio.run(reconciler.reconcile(snapshot.suppliers[0], snapshot))

        assert result.outcome == SyncOutcome.UPDATED
        name, payment_id, sent = backend.calls[-1]
        assert name == "update_payment"
        assert payment_id == "77"
        assert sent.status == "Approved"
        assert sent.net_amount == Decimal("4900")

    def test_blank_status_falls_back_to_pending(self):
        backend = FakeBackend()
        snapshot = self._snapshot()
        snapshot.payments = [payment("S001", id="77", status="")]

        asyncio.run(make_reconciler(backend).reconcile(snapshot.suppliers[0], snapshot))

        assert backend.calls[-1][2].status == "Pending"

    def test_duplicate_payments_update_first_match(self):
        backend = FakeBackend()
        snapshot = self._snapshot()
        snapshot.payments = [payment("S001", id="1"), payment("S001", id="2")]

        result = asyncio.run(make_reconciler(backend).reconcile(snapshot.suppliers[0], snapshot))

        assert result.payment_id == "1"
        assert len(backend.writes) == 1

    def test_transport_override(self):
        backend = FakeBackend()
        snapshot = self._snapshot()

        asyncio.run(make_reconciler(backend).reconcile(snapshot.suppliers[0], snapshot, transport_charge=Decimal("0")))

        assert backend.calls[-1][1].net_amount == Decimal("5000")

    def test_net_clamped_at_zero(self):
        backend = FakeBackend()
        snapshot = LedgerSnapshot(
            suppliers=[supplier("S001")],
            collections=[event("S001", 5, 100, "2023-04-03")],
            advances=[advance("S001", 400)],
            loans=[loan("S001", 200, "Active")],
        )
        asyncio.run(make_reconciler(backend).reconcile(snapshot.suppliers[0], snapshot))
        assert backend.calls[-1][1].net_amount == 0

    def test_write_failure_raises(self):
        backend = FakeBackend()
        backend.fail["create_payment"] = BackendApiError("Server error", 500)
        snapshot = self._snapshot()

        with pytest.raises(BackendApiError):
            asyncio.run(make_reconciler(backend).reconcile(snapshot.suppliers[0], snapshot))
        assert snapshot.payments == []


# =============================================================================
# RECONCILE ALL
# =============================================================================

class TestReconcileAll:

    def _backend(self) -> FakeBackend:
        return FakeBackend(
            suppliers=[supplier("A"), supplier("B"), supplier("C")],
            collections=[
                event("A", 50, 100, "2023-04-03"),
                event("B", 50, 100, "2023-04-03"),
                event("C", 50, 100, "2023-04-03"),
            ],
            payments=[payment("A", id="10", net_amount=1)],
        )

    def test_failure_of_one_supplier_does_not_stop_the_batch(self):
        backend = self._backend()
        backend.fail["create_payment"] = lambda p: BackendApiError("Duplicate key", 500) if p.supplier_id == "B" else None

        report = asyncio.run(make_reconciler(backend).reconcile_all())

        outcomes = {r.supplier_id: r.outcome for r in report.results}
        assert outcomes == {"A": SyncOutcome.UPDATED, "B": SyncOutcome.FAILED, "C": SyncOutcome.CREATED}
        assert report.failed_suppliers == ["B"]
        assert report.results[1].error == "Duplicate key"

        # A's update is still reflected after the batch
        a = next(p for p in backend.payments if p.supplier_id == "A")
        assert a.net_amount == Decimal("4900")
        assert report.payments_refreshed
        assert {p.supplier_id for p in report.payments} == {"A", "C"}

    def test_suppliers_processed_in_order(self):
        backend = self._backend()
        asyncio.run(make_reconciler(backend).reconcile_all())
        written = [c[-1].supplier_id for c in backend.writes]
        assert written == ["A", "B", "C"]

    def test_repeated_supplier_updates_payment_created_earlier(self):
        backend = self._backend()
        suppliers = [supplier("C"), supplier("C")]

        report = asyncio.run(make_reconciler(backend).reconcile_all(suppliers=suppliers))

        assert [r.outcome for r in report.results] == [SyncOutcome.CREATED, SyncOutcome.UPDATED]
        created_id = report.results[0].payment_id
        assert report.results[1].payment_id == created_id
        assert [c[0] for c in backend.writes] == ["create_payment", "update_payment"]
        assert backend.writes[1][1] == created_id
        assert [p.supplier_id for p in backend.payments].count("C") == 1

    def test_refresh_failure_keeps_previous_list(self):
        backend = self._backend()
        reconciler = make_reconciler(backend)
        snapshot = asyncio.run(reconciler.load_snapshot())
        backend.fail["list_payments"] = BackendConnectionError("Could not reach backend (timed out)")

        report = asyncio.run(reconciler.reconcile_all(snapshot=snapshot))

        assert not report.payments_refreshed
        assert [p.id for p in report.payments] == ["10"]

    def test_snapshot_failure_writes_nothing(self):
        backend = self._backend()
        backend.fail["list_loans"] = BackendApiError("Server error", 500)

        with pytest.raises(BackendApiError):
            asyncio.run(make_reconciler(backend).reconcile_all())
        assert backend.writes == []

    def test_report_summary(self):
        backend = self._backend()
        report = asyncio.run(make_reconciler(backend).reconcile_all())
        data = report.to_dict()
        assert data["batch_id"].startswith("sync-")
        assert data["summary"] == {"suppliers": 3, "created": 2, "updated": 1, "skipped": 0, "failed": 0}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
