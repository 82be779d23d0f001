"""Inventory endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_backend, get_views
from api.services.summaries import inventory_summary
from api.services.views import PageViews
from connectors.backend.gateway import FactoryBackend
from models.api_responses import InventoryResponse


router = APIRouter()


@router.get("", response_model=InventoryResponse)
async def get_inventory(
    tea_search: Optional[str] = Query(None, description="Tea packet name contains"),
    fertilizer_search: Optional[str] = Query(None, description="Fertilizer name contains"),
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> InventoryResponse:
    """Tea packets and fertilizers with stock status and values."""
    view = views.inventory
    warnings = await view.refresh(backend)
    tea, fertilizer, low_stock = inventory_summary(view.get("products"), tea_search, fertilizer_search)
    return InventoryResponse(
        tea_packets=tea,
        fertilizers=fertilizer,
        low_stock_count=low_stock,
        warnings=warnings,
    )
