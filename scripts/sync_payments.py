"""Recompute every supplier's payment from the ledgers and upsert it.

Runs the same reconciliation as the finances page "sync payments" button:

    net = max(0, gross tea amount - outstanding advance - outstanding loan - transport charge)

Usage:
    python scripts/sync_payments.py
    python scripts/sync_payments.py --transport-charge 150 --supplier S001 --output sync.json
"""

import argparse
import asyncio
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from connectors.backend.client import BackendApiClient, BackendApiConfig, BackendApiError
from connectors.backend.gateway import FactoryBackend
from core.config import Settings, get_settings
from core.observability.logging import configure_from_settings
from reconciliation.engine import PaymentReconciler, SyncOutcome, SyncReport


def _decimal(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not an amount: {value}")
    if amount < 0:
        raise argparse.ArgumentTypeError("transport charge cannot be negative")
    return amount


async def sync_payments(
    settings: Settings,
    transport_charge: Optional[Decimal] = None,
    supplier_ids: Optional[List[str]] = None,
) -> SyncReport:
    """Run reconcile-all against the configured backend."""
    async with BackendApiClient(BackendApiConfig.from_settings(settings)) as client:
        backend = FactoryBackend(client)
        reconciler = PaymentReconciler.from_settings(backend, settings)
        snapshot = await reconciler.load_snapshot()

        suppliers = None
        if supplier_ids:
            wanted = set(supplier_ids)
            suppliers = [s for s in snapshot.suppliers if s.supplier_id in wanted]
            missing = wanted - {s.supplier_id for s in suppliers}
            if missing:
                print(f"Unknown supplier id(s): {', '.join(sorted(missing))}", file=sys.stderr)

        return await reconciler.reconcile_all(
            suppliers=suppliers,
            transport_charge=transport_charge,
            snapshot=snapshot,
        )


def print_report(report: SyncReport) -> None:
    """Print a sync report in a readable format."""
    print("=" * 60)
    print(f"PAYMENT SYNC {report.batch_id}")
    print("=" * 60)
    print(f"Suppliers: {len(report.results)}")
    print(f"Created:   {report.count(SyncOutcome.CREATED)}")
    print(f"Updated:   {report.count(SyncOutcome.UPDATED)}")
    print(f"Skipped:   {report.count(SyncOutcome.SKIPPED)}")
    print(f"Failed:    {report.count(SyncOutcome.FAILED)}")

    for result in report.results:
        if result.outcome == SyncOutcome.FAILED:
            print(f"  - {result.supplier_id}: {result.error}")

    if not report.payments_refreshed:
        print("\nPayment list could not be refreshed after the sync.")


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync supplier payments with their ledgers")
    parser.add_argument(
        "--transport-charge",
        type=_decimal,
        default=None,
        help="Transport charge per supplier (default: TRANSPORT_CHARGE or 100)",
    )
    parser.add_argument(
        "--supplier",
        action="append",
        dest="suppliers",
        help="Only sync this supplier id (repeatable)",
    )
    parser.add_argument("--output", type=Path, help="Output JSON file for the report")
    args = parser.parse_args()

    settings = get_settings()
    configure_from_settings(settings)

    try:
        report = asyncio.run(sync_payments(settings, args.transport_charge, args.suppliers))
    except BackendApiError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print_report(report)

    if args.output:
        args.output.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
        print(f"\nReport written to {args.output}")

    return 1 if report.failed_suppliers else 0


if __name__ == "__main__":
    sys.exit(main())
