"""Core data models - canonical back-office record types.

This package contains the canonical models for every record the factory
backend serves.
"""

from core.models.canonical import (
    # Base
    CanonicalBase,
    DecimalValue,
    AmountValue,
    IntValue,
    DateValue,
    TimestampValue,

    # Status vocabularies
    AdvanceStatus,
    LedgerStatus,
    Ledger,
    status_is,

    # Registry
    Supplier,
    Driver,
    Product,

    # Collections
    CollectionEvent,
    CollectionStat,

    # Ledgers
    Advance,
    Loan,
    Payment,

    # Tracking
    DriverLocationUpdate,
)

__all__ = [
    "CanonicalBase",
    "DecimalValue",
    "AmountValue",
    "IntValue",
    "DateValue",
    "TimestampValue",
    "AdvanceStatus",
    "LedgerStatus",
    "Ledger",
    "status_is",
    "Supplier",
    "Driver",
    "Product",
    "CollectionEvent",
    "CollectionStat",
    "Advance",
    "Loan",
    "Payment",
    "DriverLocationUpdate",
]
