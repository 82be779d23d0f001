"""Models Package.

API request and response models for the back-office dashboard. The records
read from the backend live in core.models.
"""

from models.api_responses import (
    # Base
    MessageResponse,

    # Dashboard
    CollectionBar,
    LowStockAlert,
    DashboardResponse,

    # Salary calculations
    SalaryRow,
    SalaryCalculationsResponse,

    # Finances
    FinanceSummary,
    FinancesResponse,
    StatusOptionsResponse,
    BatchAdvanceResponse,
    SyncSummary,
    SyncReportResponse,

    # Inventory
    InventoryItem,
    InventoryCategory,
    InventoryResponse,

    # Registry
    SuppliersResponse,
    DriversResponse,

    # Tracking
    TrackedDriverResponse,
    TrackingBoardResponse,

    # Requests
    AdvanceRequest,
    AdvanceForAllRequest,
    LoanRequest,
    PaymentRequest,
    StatusChangeRequest,
    SyncRequest,
    SupplierRegistration,
    DriverRegistration,
)

__all__ = [
    "MessageResponse",
    "CollectionBar",
    "LowStockAlert",
    "DashboardResponse",
    "SalaryRow",
    "SalaryCalculationsResponse",
    "FinanceSummary",
    "FinancesResponse",
    "StatusOptionsResponse",
    "BatchAdvanceResponse",
    "SyncSummary",
    "SyncReportResponse",
    "InventoryItem",
    "InventoryCategory",
    "InventoryResponse",
    "SuppliersResponse",
    "DriversResponse",
    "TrackedDriverResponse",
    "TrackingBoardResponse",
    "AdvanceRequest",
    "AdvanceForAllRequest",
    "LoanRequest",
    "PaymentRequest",
    "StatusChangeRequest",
    "SyncRequest",
    "SupplierRegistration",
    "DriverRegistration",
]
