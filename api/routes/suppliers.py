"""Supplier registry endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_backend, get_registry_service, get_views
from api.services.registry import RegistryService
from api.services.summaries import filter_by_name
from api.services.views import PageViews
from connectors.backend.gateway import FactoryBackend
from models.api_responses import MessageResponse, SupplierRegistration, SuppliersResponse


router = APIRouter()


@router.get("", response_model=SuppliersResponse)
async def list_suppliers(
    search: Optional[str] = Query(None, description="Supplier name contains"),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> SuppliersResponse:
    view = views.suppliers
    warnings = await view.refresh(backend)
    suppliers = view.get("suppliers")
    return SuppliersResponse(
        total=len(suppliers),
        suppliers=filter_by_name(suppliers, search, attr="full_name"),
        warnings=warnings,
    )


@router.post("", response_model=MessageResponse, status_code=201)
async def register_supplier(
    body: SupplierRegistration,
    service: RegistryService = Depends(get_registry_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    """Register a supplier after checking for missing fields and duplicates."""
    view = views.suppliers
    if "suppliers" not in view.data:
        await view.refresh(backend)
    await service.register_supplier(body, existing=view.get("suppliers"))
    warnings = await view.refresh(backend)
    return MessageResponse(message=f"Supplier {body.supplier_id} registered", warnings=warnings)


@router.delete("/{supplier_id}", response_model=MessageResponse)
async def delete_supplier(
    supplier_id: str,
    service: RegistryService = Depends(get_registry_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    await service.delete_supplier(supplier_id)
    warnings = await views.suppliers.refresh(backend)
    return MessageResponse(message=f"Supplier {supplier_id} deleted", warnings=warnings)
