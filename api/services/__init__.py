"""API Services Package."""

from api.services.finances import FinanceService
from api.services.registry import RegistryService
from api.services.views import PageViews, fetch_or_fallback

__all__ = [
    "FinanceService",
    "RegistryService",
    "PageViews",
    "fetch_or_fallback",
]
