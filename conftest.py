"""Shared test utilities: an in-memory backend and record builders."""

import sys
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from core.models.canonical import (
    Advance,
    CollectionEvent,
    Driver,
    Ledger,
    Loan,
    Payment,
    Product,
    Supplier,
)


# =============================================================================
# RECORD BUILDERS
# =============================================================================

def supplier(supplier_id: str, name: str = "", **kwargs) -> Supplier:
    return Supplier(supplier_id=supplier_id, full_name=name or f"Supplier {supplier_id}", **kwargs)


def event(supplier_id: str, rate, weight, timestamp: Union[str, datetime], name: str = "") -> CollectionEvent:
    return CollectionEvent.model_validate({
        "supplierId": supplier_id,
        "supplierName": name or f"Supplier {supplier_id}",
        "rate": rate,
        "weight": weight,
        "timestamp": timestamp,
    })


def advance(supplier_id: str, amount, status: str = "Pending", id: Optional[str] = None) -> Advance:
    return Advance(supplier_id=supplier_id, amount=Decimal(str(amount)), status=status, id=id)


def loan(supplier_id: str, amount, status: str = "Active", id: Optional[str] = None) -> Loan:
    return Loan(supplier_id=supplier_id, amount=Decimal(str(amount)), status=status, id=id)


def payment(supplier_id: str, id: Optional[str] = None, status: str = "Pending", **amounts) -> Payment:
    return Payment(supplier_id=supplier_id, id=id, status=status, **amounts)


def driver(driver_id: str, name: str = "", **kwargs) -> Driver:
    return Driver(driver_id=driver_id, full_name=name or f"Driver {driver_id}", **kwargs)


def product(product_id: str, name: str, rate, stock: int) -> Product:
    return Product(product_id=product_id, name=name, rate_per_bag=Decimal(str(rate)), stock_bags=stock)


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================

FailureRule = Union[BaseException, Callable[..., Optional[BaseException]]]


class FakeBackend:
    """Stands in for `FactoryBackend`, keeping every ledger in lists.

    Set `fail[method_name]` to an exception (always raised) or to a
    callable receiving the call's arguments and returning an exception to
    raise, or None to let the call through.
    """

    def __init__(self, **ledgers: List[Any]):
        self.suppliers: List[Supplier] = list(ledgers.get("suppliers", []))
        self.drivers: List[Driver] = list(ledgers.get("drivers", []))
        self.products: List[Product] = list(ledgers.get("products", []))
        self.collections: List[CollectionEvent] = list(ledgers.get("collections", []))
        self.statistics: List[Any] = list(ledgers.get("statistics", []))
        self.advances: List[Advance] = list(ledgers.get("advances", []))
        self.loans: List[Loan] = list(ledgers.get("loans", []))
        self.payments: List[Payment] = list(ledgers.get("payments", []))
        self.calls: List[tuple] = []
        self.fail: Dict[str, FailureRule] = {}
        self._next_id = 1000

    def _enter(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        rule = self.fail.get(name)
        if rule is None:
            return
        if isinstance(rule, BaseException):
            raise rule
        exc = rule(*args)
        if exc is not None:
            raise exc

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    @property
    def writes(self) -> List[tuple]:
        return [c for c in self.calls if not c[0].startswith(("list_", "get_", "collection_"))]

    # Registry
    async def list_suppliers(self):
        self._enter("list_suppliers")
        return list(self.suppliers)

    async def create_supplier(self, payload: Dict[str, Any]):
        self._enter("create_supplier", payload)
        self.suppliers.append(Supplier.model_validate(payload))
        return {"message": "Supplier created"}

    async def delete_supplier(self, supplier_id: str):
        self._enter("delete_supplier", supplier_id)
        self.suppliers = [s for s in self.suppliers if s.supplier_id != supplier_id]

    async def list_drivers(self):
        self._enter("list_drivers")
        return list(self.drivers)

    async def create_driver(self, payload: Dict[str, Any]):
        self._enter("create_driver", payload)
        self.drivers.append(Driver.model_validate(payload))
        return {"message": "Driver created"}

    async def list_products(self):
        self._enter("list_products")
        return list(self.products)

    # Collections
    async def list_collections(self):
        self._enter("list_collections")
        return list(self.collections)

    async def collection_statistics(self):
        self._enter("collection_statistics")
        return list(self.statistics)

    # Ledgers
    async def list_advances(self):
        self._enter("list_advances")
        return list(self.advances)

    async def create_advance(self, record: Advance):
        self._enter("create_advance", record)
        self.advances.append(record.model_copy(update={"id": self._new_id()}))
        return {"message": "Advance created"}

    async def list_loans(self):
        self._enter("list_loans")
        return list(self.loans)

    async def create_loan(self, record: Loan):
        self._enter("create_loan", record)
        self.loans.append(record.model_copy(update={"id": self._new_id()}))
        return {"message": "Loan created"}

    async def list_payments(self):
        self._enter("list_payments")
        return list(self.payments)

    async def get_payment(self, payment_id: str):
        self._enter("get_payment", payment_id)
        return next((p for p in self.payments if p.id == payment_id), None)

    async def create_payment(self, record: Payment):
        self._enter("create_payment", record)
        new_id = self._new_id()
        self.payments.append(record.model_copy(update={"id": new_id}))
        return {"id": new_id}

    async def update_payment(self, payment_id: str, record: Payment):
        self._enter("update_payment", payment_id, record)
        self.payments = [
            record.model_copy(update={"id": payment_id}) if p.id == payment_id else p
            for p in self.payments
        ]
        return {"message": "Payment updated"}

    async def update_status(self, ledger: Ledger, record_id: str, status: str):
        self._enter("update_status", ledger, record_id, status)
        name = {Ledger.ADVANCE: "advances", Ledger.LOAN: "loans", Ledger.PAYMENT: "payments"}[ledger]
        setattr(self, name, [
            r.model_copy(update={"status": status}) if r.id == record_id else r
            for r in getattr(self, name)
        ])
        return {"message": "Status updated"}

    async def delete_record(self, ledger: Ledger, record_id: str):
        self._enter("delete_record", ledger, record_id)
        name = {Ledger.ADVANCE: "advances", Ledger.LOAN: "loans", Ledger.PAYMENT: "payments"}[ledger]
        setattr(self, name, [r for r in getattr(self, name) if r.id != record_id])


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
