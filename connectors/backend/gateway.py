"""Typed access to the factory backend endpoints.

`FactoryBackend` wraps `BackendApiClient` with one method per endpoint the
back-office uses and converts JSON rows into canonical models. Services and
the payment reconciler depend only on this class.
"""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import ValidationError

from connectors.backend.client import BackendApiClient, BackendNotFoundError
from core.models.canonical import (
    Advance,
    CanonicalBase,
    CollectionEvent,
    CollectionStat,
    Driver,
    Ledger,
    Loan,
    Payment,
    Product,
    Supplier,
)
from core.observability.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=CanonicalBase)


# Backend resource names
SUPPLIERS = "supplier"
DRIVERS = "driver"
PRODUCTS = "product"
COLLECTIONS = "supplierCollection"
ADVANCES = "supplierAdvance"
LOANS = "supplierLoan"
PAYMENTS = "supplierPayment"

LEDGER_RESOURCES = {
    Ledger.ADVANCE: ADVANCES,
    Ledger.LOAN: LOANS,
    Ledger.PAYMENT: PAYMENTS,
}


def parse_rows(model: Type[ModelT], payload: Any) -> List[ModelT]:
    """Validate a list response, skipping rows that do not fit the model.

    Accepts a bare JSON array or an object wrapping it under `data`/`value`.
    """
    if payload is None:
        return []
    if isinstance(payload, dict):
        payload = payload.get("data", payload.get("value", []))
    if not isinstance(payload, list):
        logger.warning(f"Expected a list of {model.__name__} rows, got {type(payload).__name__}")
        return []

    rows: List[ModelT] = []
    for index, row in enumerate(payload):
        try:
            rows.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(
                f"Skipping malformed {model.__name__} row {index}: {e.error_count()} error(s)",
                extra_fields={"errors": e.errors(include_url=False)},
            )
    return rows


class FactoryBackend:
    """Endpoint-level gateway to the factory backend.

    Usage:
        async with BackendApiClient(config) as client:
            backend = FactoryBackend(client)
            payments = await backend.list_payments()
    """

    def __init__(self, client: BackendApiClient):
        self.client = client

    # =========================================================================
    # Registry
    # =========================================================================

    async def list_suppliers(self) -> List[Supplier]:
        return parse_rows(Supplier, await self.client.get(f"{SUPPLIERS}/all"))

    async def create_supplier(self, payload: Dict[str, Any]) -> Any:
        return await self.client.post(f"{SUPPLIERS}/create", payload)

    async def delete_supplier(self, supplier_id: str) -> None:
        await self.client.delete(f"{SUPPLIERS}/delete/{supplier_id}")

    async def list_drivers(self) -> List[Driver]:
        return parse_rows(Driver, await self.client.get(f"{DRIVERS}/AllDrivers"))

    async def create_driver(self, payload: Dict[str, Any]) -> Any:
        return await self.client.post(f"{DRIVERS}/create", payload)

    async def list_products(self) -> List[Product]:
        return parse_rows(Product, await self.client.get(f"{PRODUCTS}/all"))

    # =========================================================================
    # Collections
    # =========================================================================

    async def list_collections(self) -> List[CollectionEvent]:
        return parse_rows(CollectionEvent, await self.client.get(f"{COLLECTIONS}/all"))

    async def collection_statistics(self) -> List[CollectionStat]:
        return parse_rows(CollectionStat, await self.client.get(f"{COLLECTIONS}/statistics"))

    # =========================================================================
    # Ledgers
    # =========================================================================

    async def list_advances(self) -> List[Advance]:
        return parse_rows(Advance, await self.client.get(f"{ADVANCES}/all"))

    async def create_advance(self, advance: Advance) -> Any:
        return await self.client.post(f"{ADVANCES}/create", advance.to_payload(exclude={"id"}))

    async def list_loans(self) -> List[Loan]:
        return parse_rows(Loan, await self.client.get(f"{LOANS}/all"))

    async def create_loan(self, loan: Loan) -> Any:
        return await self.client.post(f"{LOANS}/create", loan.to_payload(exclude={"id"}))

    async def list_payments(self) -> List[Payment]:
        return parse_rows(Payment, await self.client.get(f"{PAYMENTS}/all"))

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Fetch one payment; a missing payment is `None`, not an error."""
        try:
            payload = await self.client.get(f"{PAYMENTS}/{payment_id}")
        except BackendNotFoundError:
            return None
        if not payload:
            return None
        return Payment.model_validate(payload)

    async def create_payment(self, payment: Payment) -> Any:
        return await self.client.post(f"{PAYMENTS}/create", payment.to_payload(exclude={"id"}))

    async def update_payment(self, payment_id: str, payment: Payment) -> Any:
        return await self.client.put(
            f"{PAYMENTS}/update/{payment_id}",
            payment.to_payload(exclude={"id"}),
        )

    async def update_status(self, ledger: Ledger, record_id: str, status: str) -> Any:
        """Send a status change verbatim; no transition rules apply."""
        resource = LEDGER_RESOURCES[ledger]
        return await self.client.put(f"{resource}/updateStatus/{record_id}", {"status": status})

    async def delete_record(self, ledger: Ledger, record_id: str) -> None:
        resource = LEDGER_RESOURCES[ledger]
        await self.client.delete(f"{resource}/delete/{record_id}")
