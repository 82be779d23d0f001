"""Supplier and driver registration."""

import re
from typing import Callable, Iterable, List, Optional

from connectors.backend.client import BackendApiError, BackendValidationError
from connectors.backend.gateway import FactoryBackend
from core.errors import ValidationFailure
from core.models.canonical import Driver, Supplier
from core.observability.logging import get_logger
from models.api_responses import DriverRegistration, SupplierRegistration

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

REFERENCE_CONSTRAINT = "REFERENCE constraint"
SUPPLIER_IN_USE_MESSAGE = "Cannot delete supplier because related collections or data exist"

SUPPLIER_FIELDS = {
    "supplier_id": "Supplier ID",
    "full_name": "Full name",
    "address": "Address",
    "contact_no": "Contact number",
    "account_number": "Account number",
    "bank_name": "Bank name",
    "branch": "Branch",
    "email": "Email",
    "username": "Username",
    "password": "Password",
}

DRIVER_FIELDS = {
    "driver_id": "Driver ID",
    "full_name": "Full name",
    "contact_number": "Contact number",
    "email": "Email",
    "vehicle_number": "Vehicle number",
    "route": "Route",
    "serial_code": "Serial code",
}


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()


def _required(form, fields) -> List[str]:
    return [f"{label} is required" for name, label in fields.items() if not (getattr(form, name) or "").strip()]


def _duplicate(existing: Iterable, value: str, attr: str) -> bool:
    return any(_same(getattr(record, attr), value) for record in existing)


def validate_supplier(form: SupplierRegistration, existing: Iterable[Supplier]) -> None:
    """Every field required; register id and email must be new."""
    existing = list(existing)
    errors = _required(form, SUPPLIER_FIELDS)
    if form.email and not EMAIL_PATTERN.match(form.email):
        errors.append("Email is not valid")
    if form.supplier_id and _duplicate(existing, form.supplier_id, "supplier_id"):
        errors.append(f"Supplier ID {form.supplier_id} is already registered")
    if form.email and _duplicate(existing, form.email, "email"):
        errors.append(f"Email {form.email} is already registered")
    if errors:
        raise ValidationFailure(errors)


def validate_driver(form: DriverRegistration, existing: Iterable[Driver]) -> None:
    """Every field required; register id, email and route must be new."""
    existing = list(existing)
    errors = _required(form, DRIVER_FIELDS)
    if form.email and not EMAIL_PATTERN.match(form.email):
        errors.append("Email is not valid")
    if form.driver_id and _duplicate(existing, form.driver_id, "driver_id"):
        errors.append(f"Driver ID {form.driver_id} is already registered")
    if form.email and _duplicate(existing, form.email, "email"):
        errors.append(f"Email {form.email} is already registered")
    if form.route and _duplicate(existing, form.route, "route"):
        errors.append(f"Route {form.route} is already assigned to another driver")
    if errors:
        raise ValidationFailure(errors)


class RegistryService:
    """Supplier and driver registry operations.

    Duplicate checks run against the list passed in, or a freshly loaded
    one; if that load fails the check runs against an empty list and the
    backend has the final say.
    """

    def __init__(self, backend: FactoryBackend):
        self.backend = backend

    async def _existing(self, loaded: Optional[list], fetch: Callable) -> list:
        if loaded is not None:
            return loaded
        try:
            return await fetch()
        except BackendApiError as e:
            logger.warning(f"Duplicate check skipped, registry could not be loaded: {e.message}")
            return []

    async def register_supplier(self, form: SupplierRegistration, existing: Optional[List[Supplier]] = None) -> None:
        """
        Raises:
            ValidationFailure: Missing field or duplicate id/email
            BackendApiError: If the backend rejects the registration
        """
        validate_supplier(form, await self._existing(existing, self.backend.list_suppliers))
        await self.backend.create_supplier(form.to_payload())
        logger.info(f"Supplier {form.supplier_id} registered")

    async def delete_supplier(self, supplier_id: str) -> None:
        """
        Raises:
            BackendValidationError: Supplier still referenced by other records
            BackendApiError: Any other backend failure
        """
        try:
            await self.backend.delete_supplier(supplier_id)
        except BackendApiError as e:
            if REFERENCE_CONSTRAINT in e.message or REFERENCE_CONSTRAINT in (e.response_body or ""):
                logger.warning(f"Supplier {supplier_id} still has related records; not deleted")
                raise BackendValidationError(SUPPLIER_IN_USE_MESSAGE, e.status_code, e.response_body) from e
            raise
        logger.info(f"Supplier {supplier_id} deleted")

    async def register_driver(self, form: DriverRegistration, existing: Optional[List[Driver]] = None) -> None:
        """
        Raises:
            ValidationFailure: Missing field or duplicate id/email/route
            BackendApiError: If the backend rejects the registration
        """
        validate_driver(form, await self._existing(existing, self.backend.list_drivers))
        await self.backend.create_driver(form.to_payload())
        logger.info(f"Driver {form.driver_id} registered")
