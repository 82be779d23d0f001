"""Registry service tests: supplier and driver registration, supplier deletion."""

import asyncio

import pytest

from api.services.registry import SUPPLIER_IN_USE_MESSAGE, RegistryService
from conftest import FakeBackend, driver, supplier
from connectors.backend.client import BackendApiError, BackendValidationError
from core.errors import ValidationFailure
from models.api_responses import DriverRegistration, SupplierRegistration


def supplier_form(**overrides) -> SupplierRegistration:
    data = dict(
        supplierId="S100",
        fullName="Nimal Perera",
        address="12 Estate Road, Nuwara Eliya",
        contactNo="0771234567",
        accountNumber="1002003004",
        bankName="Bank of Ceylon",
        branch="Nuwara Eliya",
        email="nimal@example.com",
        username="nimal",
        password="secret123",
    )
    data.update(overrides)
    return SupplierRegistration(**data)


def driver_form(**overrides) -> DriverRegistration:
    data = dict(
        driverId="D100",
        fullName="Sunil Fernando",
        contactNumber="0719876543",
        email="sunil@example.com",
        vehicleNumber="CAB-1234",
        route="Route 7",
        serialCode="GPS-0007",
    )
    data.update(overrides)
    return DriverRegistration(**data)


class TestRegisterSupplier:

    def test_registers_with_camel_case_payload(self, fake_backend):
        asyncio.run(RegistryService(fake_backend).register_supplier(supplier_form(), existing=[]))

        name, payload = fake_backend.writes[0]
        assert name == "create_supplier"
        assert payload["supplierId"] == "S100"
        assert payload["password"] == "secret123"

    def test_missing_fields_send_nothing(self, fake_backend):
        form = supplier_form(address="   ", password="")
        with pytest.raises(ValidationFailure) as exc_info:
            asyncio.run(RegistryService(fake_backend).register_supplier(form, existing=[]))
        assert "Address is required" in exc_info.value.errors
        assert "Password is required" in exc_info.value.errors
        assert fake_backend.writes == []

    def test_duplicate_id_and_email_rejected(self, fake_backend):
        existing = [supplier("s100", email="NIMAL@example.com")]
        with pytest.raises(ValidationFailure) as exc_info:
            asyncio.run(RegistryService(fake_backend).register_supplier(supplier_form(), existing=existing))
        assert len(exc_info.value.errors) == 2
        assert fake_backend.writes == []

    def test_loads_existing_when_not_given(self):
        backend = FakeBackend(suppliers=[supplier("S100")])
        with pytest.raises(ValidationFailure):
            asyncio.run(RegistryService(backend).register_supplier(supplier_form()))
        assert backend.calls == [("list_suppliers",)]

    def test_invalid_email(self, fake_backend):
        with pytest.raises(ValidationFailure) as exc_info:
            asyncio.run(RegistryService(fake_backend).register_supplier(supplier_form(email="nimal"), existing=[]))
        assert exc_info.value.errors == ["Email is not valid"]


class TestDeleteSupplier:

    def test_reference_constraint_message(self, fake_backend):
        fake_backend.fail["delete_supplier"] = BackendApiError(
            'The DELETE statement conflicted with the REFERENCE constraint "FK_Collection_Supplier".',
            500,
        )
        with pytest.raises(BackendValidationError) as exc_info:
            asyncio.run(RegistryService(fake_backend).delete_supplier("S001"))
        assert exc_info.value.message == SUPPLIER_IN_USE_MESSAGE

    def test_other_errors_propagate_unchanged(self, fake_backend):
        fake_backend.fail["delete_supplier"] = BackendApiError("Server error", 500)
        with pytest.raises(BackendApiError) as exc_info:
            asyncio.run(RegistryService(fake_backend).delete_supplier("S001"))
        assert exc_info.value.message == "Server error"

    def test_delete(self):
        backend = FakeBackend(suppliers=[supplier("S001"), supplier("S002")])
        asyncio.run(RegistryService(backend).delete_supplier("S001"))
        assert [s.supplier_id for s in backend.suppliers] == ["S002"]


class TestRegisterDriver:

    def test_registers(self, fake_backend):
        asyncio.run(RegistryService(fake_backend).register_driver(driver_form(), existing=[]))
        assert fake_backend.writes[0][1]["vehicleNumber"] == "CAB-1234"

    def test_duplicate_route_rejected(self, fake_backend):
        existing = [driver("D001", route="route 7")]
        with pytest.raises(ValidationFailure) as exc_info:
            asyncio.run(RegistryService(fake_backend).register_driver(driver_form(), existing=existing))
        assert exc_info.value.errors == ["Route Route 7 is already assigned to another driver"]
        assert fake_backend.writes == []

    def test_registry_load_failure_leaves_check_to_backend(self, fake_backend):
        fake_backend.fail["list_drivers"] = BackendApiError("Server error", 500)
        asyncio.run(RegistryService(fake_backend).register_driver(driver_form()))
        assert [c[0] for c in fake_backend.writes] == ["create_driver"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
