"""Core canonical data models for the factory back-office.

These models represent the records served by the factory backend in one
standardized shape. Inbound payloads are accepted either in the documented
camelCase form (`supplierId`, `rate`, `weight`, ...) or with the backend's
legacy column names (`S_RegisterID`, `Current_Rate`, `TotalWeight`, ...).
Outbound payloads always use the camelCase form.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.functional_serializers import PlainSerializer
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (handle the loose formats the backend returns)
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from various formats (string with Rs. or commas, floats, etc.)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not an amount")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        s = s.replace("Rs.", "").replace(",", "").strip()
        try:
            return Decimal(s)
        except InvalidOperation:
            raise ValueError(f"Cannot parse amount: {value}")
    return value


def _parse_amount(value):
    """Parse an amount where a missing value counts as zero."""
    parsed = _parse_decimal(value)
    return Decimal("0") if parsed is None else parsed


def _parse_int(value):
    """Parse integer from various formats."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        s = value.strip().replace(",", "")
        if s == "":
            return None
        return int(float(s))
    return value


def _parse_timestamp(value):
    """Parse a timestamp from ISO strings (with or without `Z`) or dates."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            pass
        for fmt in ("%Y-%m-%d %H:%M:%S", "%Y/%m/%d %H:%M:%S", "%m/%d/%Y", "%Y/%m/%d"):
            try:
                return datetime.strptime(s, fmt)
            except ValueError:
                continue
        raise ValueError(f"Cannot parse timestamp: {value}")
    return value


def _parse_date(value):
    parsed = _parse_timestamp(value)
    return parsed.date() if isinstance(parsed, datetime) else parsed


def _parse_id(value):
    """Record ids arrive as numbers or strings; keep them as strings."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _parse_text(value):
    return "" if value is None else str(value)


def _decimal_to_number(value: Decimal):
    """Serialize decimals as JSON numbers, keeping integral amounts integral."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Annotated types for automatic parsing
DecimalValue = Annotated[
    Decimal,
    BeforeValidator(_parse_decimal),
    PlainSerializer(_decimal_to_number, when_used="json"),
]
AmountValue = Annotated[
    Decimal,
    BeforeValidator(_parse_amount),
    PlainSerializer(_decimal_to_number, when_used="json"),
]
IntValue = Annotated[int, BeforeValidator(_parse_int)]
TimestampValue = Annotated[datetime, BeforeValidator(_parse_timestamp)]
DateValue = Annotated[date, BeforeValidator(_parse_date)]
IdValue = Annotated[str, BeforeValidator(_parse_id)]
TextValue = Annotated[str, BeforeValidator(_parse_text)]


def wire(name: str, *legacy: str, **kwargs: Any) -> Any:
    """Field accepting its camelCase wire name and any legacy column names."""
    return Field(alias=name, validation_alias=AliasChoices(name, *legacy), **kwargs)


# =============================================================================
# Status Vocabularies
# =============================================================================

class AdvanceStatus(str, Enum):
    """Status values offered for advances."""
    PENDING = "Pending"
    TRANSFERRED = "Transferred"


class LedgerStatus(str, Enum):
    """Status values offered for loans and payments."""
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PAID = "Paid"


class Ledger(str, Enum):
    """The three financial ledgers an operator can change status on."""
    ADVANCE = "advance"
    LOAN = "loan"
    PAYMENT = "payment"

    @property
    def status_options(self) -> list:
        if self is Ledger.ADVANCE:
            return [s.value for s in AdvanceStatus]
        return [s.value for s in LedgerStatus]


def status_is(status: Optional[str], value: str) -> bool:
    """Case-insensitive status comparison; a missing status matches nothing."""
    return (status or "").strip().lower() == value.lower()


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all records read from the backend."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    def to_payload(self, exclude: Optional[set] = None) -> Dict[str, Any]:
        """Serialize for a backend write (camelCase, JSON-safe, no nulls)."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude=exclude,
        )


# =============================================================================
# Registry Entities
# =============================================================================

class Supplier(CanonicalBase):
    """A registered tea leaf supplier."""
    supplier_id: IdValue = wire("supplierId", "S_RegisterID")
    full_name: TextValue = wire("fullName", "S_FullName", default="")
    address: Optional[str] = wire("address", "S_Address", default=None)
    contact_no: Optional[str] = wire("contactNo", "S_ContactNo", default=None)
    account_number: Optional[str] = wire("accountNumber", "AccountNumber", default=None)
    bank_name: Optional[str] = wire("bankName", "BankName", default=None)
    branch: Optional[str] = wire("branch", "Branch", default=None)
    email: Optional[str] = wire("email", "Email", default=None)
    username: Optional[str] = wire("username", "Username", default=None)


class Driver(CanonicalBase):
    """A collection vehicle driver, with the last position the backend knows."""
    driver_id: IdValue = wire("driverId", "D_RegisterID", "id")
    full_name: TextValue = wire("fullName", "D_FullName", "name", default="")
    contact_number: Optional[str] = wire("contactNumber", "D_ContactNumber", default=None)
    email: Optional[str] = wire("email", "Email", default=None)
    vehicle_number: Optional[str] = wire("vehicleNumber", "VehicalNumber", "vehicle", default=None)
    route: Optional[str] = wire("route", "Route", default=None)
    serial_code: Optional[str] = wire("serialCode", "Serial_Code", default=None)
    status: Optional[str] = wire("status", "Status", default=None)
    latitude: Optional[float] = wire("latitude", "Latitude", default=None)
    longitude: Optional[float] = wire("longitude", "Longitude", default=None)
    last_updated: Optional[str] = wire("lastUpdated", "LastUpdated", default=None)


class Product(CanonicalBase):
    """An inventory product; ids starting with "T" are tea packets."""
    product_id: IdValue = wire("productId", "ProductID")
    name: TextValue = wire("productName", "ProductName", default="")
    rate_per_bag: AmountValue = wire("ratePerBag", "Rate_per_Bag", default=Decimal("0"))
    stock_bags: IntValue = wire("stockBags", "Stock_bag", default=0)

    @property
    def is_tea_packet(self) -> bool:
        return self.product_id.startswith("T")


# =============================================================================
# Collections
# =============================================================================

class CollectionEvent(CanonicalBase):
    """One weighing-station record of leaf delivered by a supplier.

    A record without a timestamp still counts toward lifetime amounts but
    belongs to no month.
    """
    supplier_id: IdValue = wire("supplierId", "S_RegisterID")
    supplier_name: TextValue = wire("supplierName", "S_FullName", default="")
    rate: AmountValue = wire("rate", "Current_Rate", default=Decimal("0"), ge=0)
    weight: AmountValue = wire("weight", "TotalWeight", default=Decimal("0"), ge=0)
    timestamp: Optional[TimestampValue] = wire("timestamp", "DateTime", default=None)

    @property
    def amount(self) -> Decimal:
        return self.rate * self.weight


class CollectionStat(CanonicalBase):
    """Daily collection total from the statistics endpoint."""
    date: DateValue = wire("date", "Date")
    total_weight: AmountValue = wire("totalWeight", "TotalWeight", default=Decimal("0"))


# =============================================================================
# Financial Ledgers
# =============================================================================

class Advance(CanonicalBase):
    """A salary advance paid out to a supplier."""
    id: Optional[IdValue] = wire("id", "AdvanceID", default=None)
    supplier_id: IdValue = wire("supplierId", "S_RegisterID")
    supplier_name: TextValue = wire("supplierName", "S_FullName", default="")
    amount: AmountValue = wire("amount", "Advance_Amount", default=Decimal("0"))
    date: Optional[TimestampValue] = wire("date", "Date", default=None)
    status: TextValue = wire("status", "Status", default="")
    month: Optional[str] = wire("month", "Month", default=None)


class Loan(CanonicalBase):
    """A loan granted to a supplier, repaid in monthly amounts."""
    id: Optional[IdValue] = wire("id", "LoanID", default=None)
    supplier_id: IdValue = wire("supplierId", "S_RegisterID")
    supplier_name: TextValue = wire("supplierName", "S_FullName", default="")
    amount: AmountValue = wire("amount", "Loan_Amount", default=Decimal("0"))
    duration_months: Optional[IntValue] = wire("durationMonths", "Duration", default=None)
    purpose: Optional[str] = wire("purpose", "PurposeOfLoan", default=None)
    monthly_amount: Optional[DecimalValue] = wire("monthlyAmount", "Monthly_Amount", default=None)
    due_date: Optional[DateValue] = wire("dueDate", "Due_Date", default=None)
    status: TextValue = wire("status", "Status", default="")


class Payment(CanonicalBase):
    """A supplier's materialized salary payment.

    net_amount = max(0, tea_amount - advance_amount - loan_amount - transport_charge)
    """
    id: Optional[IdValue] = wire("id", "PaymentsID", default=None)
    supplier_id: IdValue = wire("supplierId", "S_RegisterID")
    supplier_name: TextValue = wire("supplierName", "S_FullName", default="")
    loan_amount: AmountValue = wire("loanAmount", "Supplier_Loan_Amount", default=Decimal("0"))
    advance_amount: AmountValue = wire("advanceAmount", "Supplier_Advance_Amount", default=Decimal("0"))
    tea_amount: AmountValue = wire("teaAmount", "TeaPackets_Fertilizers_Amount", default=Decimal("0"))
    transport_charge: AmountValue = wire("transportCharge", "Transport_Charge", default=Decimal("0"))
    net_amount: AmountValue = wire("netAmount", "Final_Total_Salary", default=Decimal("0"))
    date: Optional[TimestampValue] = wire("date", "Date", default=None)
    status: TextValue = wire("status", "Status", default="")


# =============================================================================
# Live Tracking
# =============================================================================

class DriverLocationUpdate(CanonicalBase):
    """A GPS ping pushed on the driver location channel."""
    driver_id: IdValue = wire("driverId", "driver_id")
    latitude: float
    longitude: float
