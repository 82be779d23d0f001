"""
API Request and Response Models for the Back-Office Dashboard.

These Pydantic models define the data contracts between the API and the
dashboard UI, one group per page:
- DashboardResponse: Overview cards, weekly collection chart, stock alerts
- SalaryCalculationsResponse: Monthly salary rows per supplier
- FinancesResponse: Advances, loans and payments with summary cards
- InventoryResponse: Tea packet and fertilizer stock
- DriversResponse / TrackedDriverResponse: Driver registry and live board

Request models carry operator input as typed; business validation happens in
the services so that failures are reported with field messages.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from core.models.canonical import (
    Advance,
    AmountValue,
    Driver,
    Loan,
    Payment,
    Supplier,
)


# =============================================================================
# BASE MODELS
# =============================================================================

class ResponseBase(BaseModel):
    """Base class for all API responses."""
    model_config = ConfigDict(populate_by_name=True)


class RequestBase(BaseModel):
    """Base class for operator input."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class MessageResponse(ResponseBase):
    message: str
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# DASHBOARD MODELS
# =============================================================================

class CollectionBar(ResponseBase):
    """One day in the weekly collection chart."""
    date: date
    label: str = Field(..., description="Short weekday label, e.g. 'Mon'")
    total_weight: AmountValue
    ratio: float = Field(..., description="Bar height relative to the busiest day (0-1)")


class LowStockAlert(ResponseBase):
    product_id: str
    name: str
    stock_bags: int


class DashboardResponse(ResponseBase):
    """Overview page."""
    total_suppliers: int
    active_drivers: int
    total_collection_kg: AmountValue
    fertilizer_stock_value: AmountValue
    pending_loans: int
    pending_advances: int
    weekly_collection: List[CollectionBar] = Field(default_factory=list)
    low_stock: List[LowStockAlert] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# SALARY CALCULATION MODELS
# =============================================================================

class SalaryRow(ResponseBase):
    """Salary aggregate for one supplier and month, with its net amount."""
    supplier_id: str
    supplier_name: str
    period: str = Field(..., description="Month label, e.g. 'April 2023'")
    total_weight: AmountValue
    average_rate: AmountValue
    gross_amount: AmountValue
    total_deductions: AmountValue
    net_amount: AmountValue


class SalaryCalculationsResponse(ResponseBase):
    month: Optional[str] = None
    search: Optional[str] = None
    rows: List[SalaryRow] = Field(default_factory=list)
    total_gross: AmountValue = Decimal("0")
    total_net: AmountValue = Decimal("0")
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# FINANCE MODELS
# =============================================================================

class FinanceSummary(ResponseBase):
    """Summary cards on the finances page."""
    total_advances: AmountValue
    total_loans: AmountValue
    total_payments: AmountValue
    pending_approvals: int


class FinancesResponse(ResponseBase):
    summary: FinanceSummary
    advances: List[Advance] = Field(default_factory=list)
    loans: List[Loan] = Field(default_factory=list)
    payments: List[Payment] = Field(default_factory=list)
    suppliers: List[Supplier] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class StatusOptionsResponse(ResponseBase):
    advance: List[str]
    loan: List[str]
    payment: List[str]


class BatchAdvanceResponse(ResponseBase):
    """Result of creating the same advance for every supplier."""
    month: str
    amount: AmountValue
    created: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    advances: List[Advance] = Field(default_factory=list)


class SyncSummary(ResponseBase):
    suppliers: int
    created: int
    updated: int
    skipped: int
    failed: int


class SyncReportResponse(ResponseBase):
    batch_id: str
    summary: SyncSummary
    payments_refreshed: bool
    failed: Dict[str, str] = Field(default_factory=dict)
    payments: List[Payment] = Field(default_factory=list)


# =============================================================================
# INVENTORY MODELS
# =============================================================================

class InventoryItem(ResponseBase):
    id: str
    name: str
    price: AmountValue
    quantity: int
    status: str = Field(..., description="'In Stock', 'Low Stock' or 'Out of Stock'")


class InventoryCategory(ResponseBase):
    items: List[InventoryItem] = Field(default_factory=list)
    total_quantity: int = 0
    total_value: AmountValue = Decimal("0")


class InventoryResponse(ResponseBase):
    tea_packets: InventoryCategory
    fertilizers: InventoryCategory
    low_stock_count: int
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# REGISTRY MODELS
# =============================================================================

class SuppliersResponse(ResponseBase):
    total: int
    suppliers: List[Supplier] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class DriversResponse(ResponseBase):
    total_drivers: int
    active_drivers: int
    routes_covered: int
    drivers: List[Driver] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# TRACKING MODELS
# =============================================================================

class TrackedDriverResponse(ResponseBase):
    id: str
    name: str
    vehicle: str
    route: str
    status: str
    last_update: str
    location: str
    coordinates: Optional[Tuple[float, float]] = None


class TrackingBoardResponse(ResponseBase):
    drivers: List[TrackedDriverResponse] = Field(default_factory=list)
    map_center: Tuple[float, float]
    live: bool = Field(..., description="Whether the location channel is connected")
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# ACTIONS
# =============================================================================

class AdvanceRequest(RequestBase):
    supplier_id: str = Field(..., alias="supplierId")
    amount: Decimal
    month: Optional[str] = Field(default=None, description="Year-month, e.g. '2024-05'")


class AdvanceForAllRequest(RequestBase):
    amount: Decimal
    month: Optional[str] = None


class LoanRequest(RequestBase):
    supplier_id: str = Field(..., alias="supplierId")
    amount: Decimal
    duration_months: int = Field(..., alias="durationMonths")
    purpose: str = ""
    monthly_amount: Decimal = Field(..., alias="monthlyAmount")
    due_date: Optional[date] = Field(default=None, alias="dueDate")
    status: str = "Pending"


class PaymentRequest(RequestBase):
    supplier_id: str = Field(..., alias="supplierId")
    loan_amount: Decimal = Field(default=Decimal("0"), alias="loanAmount")
    advance_amount: Decimal = Field(default=Decimal("0"), alias="advanceAmount")
    tea_amount: Decimal = Field(default=Decimal("0"), alias="teaAmount")
    transport_charge: Decimal = Field(default=Decimal("0"), alias="transportCharge")
    net_amount: Optional[Decimal] = Field(default=None, alias="netAmount")
    payment_date: Optional[date] = Field(default=None, alias="date")
    status: str = "Pending"


class StatusChangeRequest(RequestBase):
    status: str


class SyncRequest(RequestBase):
    transport_charge: Optional[Decimal] = Field(default=None, alias="transportCharge")


class SupplierRegistration(RequestBase):
    supplier_id: str = Field(default="", alias="supplierId")
    full_name: str = Field(default="", alias="fullName")
    address: str = ""
    contact_no: str = Field(default="", alias="contactNo")
    account_number: str = Field(default="", alias="accountNumber")
    bank_name: str = Field(default="", alias="bankName")
    branch: str = ""
    email: str = ""
    username: str = ""
    password: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class DriverRegistration(RequestBase):
    driver_id: str = Field(default="", alias="driverId")
    full_name: str = Field(default="", alias="fullName")
    contact_number: str = Field(default="", alias="contactNumber")
    email: str = ""
    vehicle_number: str = Field(default="", alias="vehicleNumber")
    route: str = ""
    serial_code: str = Field(default="", alias="serialCode")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
