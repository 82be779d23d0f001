"""Driver registry endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_backend, get_registry_service, get_views
from api.services.registry import RegistryService
from api.services.summaries import count_active_drivers, filter_by_name, routes_covered
from api.services.views import PageViews
from connectors.backend.gateway import FactoryBackend
from models.api_responses import DriverRegistration, DriversResponse, MessageResponse


router = APIRouter()


@router.get("", response_model=DriversResponse)
async def list_drivers(
    search: Optional[str] = Query(None, description="Driver name contains"),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> DriversResponse:
    view = views.drivers
    warnings = await view.refresh(backend)
    drivers = view.get("drivers")
    return DriversResponse(
        total_drivers=len(drivers),
        active_drivers=count_active_drivers(drivers),
        routes_covered=routes_covered(drivers),
        drivers=filter_by_name(drivers, search, attr="full_name"),
        warnings=warnings,
    )


@router.post("", response_model=MessageResponse, status_code=201)
async def register_driver(
    body: DriverRegistration,
    service: RegistryService = Depends(get_registry_service),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> MessageResponse:
    """Register a driver after checking for missing fields and duplicates."""
    view = views.drivers
    if "drivers" not in view.data:
        await view.refresh(backend)
    await service.register_driver(body, existing=view.get("drivers"))
    warnings = await view.refresh(backend)
    return MessageResponse(message=f"Driver {body.driver_id} registered", warnings=warnings)
