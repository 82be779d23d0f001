"""Dashboard overview endpoint.

Cards, weekly collection chart and low stock alerts for the landing page.
"""

from fastapi import APIRouter, Depends

from api.deps import get_backend, get_views
from api.services import summaries
from api.services.views import PageViews
from connectors.backend.gateway import FactoryBackend
from models.api_responses import DashboardResponse


router = APIRouter()


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    backend: FactoryBackend = Depends(get_backend),
    views: PageViews = Depends(get_views),
) -> DashboardResponse:
    """Reload every dataset behind the overview and derive its figures."""
    view = views.dashboard
    warnings = await view.refresh(backend)
    products = view.get("products")

    return DashboardResponse(
        total_suppliers=len(view.get("suppliers")),
        active_drivers=summaries.count_active_drivers(view.get("drivers")),
        total_collection_kg=summaries.total_collected_weight(view.get("collections")),
        fertilizer_stock_value=summaries.fertilizer_stock_value(products),
        pending_loans=summaries.count_exact_status(view.get("loans"), "Pending"),
        pending_advances=summaries.count_exact_status(view.get("advances"), "Pending"),
        weekly_collection=summaries.weekly_collection(view.get("statistics")),
        low_stock=summaries.low_stock_alerts(products),
        warnings=warnings,
    )
