"""Per-page view state.

Each dashboard page owns a view holding the datasets it last loaded. A
failed fetch is logged and the page keeps showing what it had before (or an
empty list on first load) together with a warning, rather than failing the
whole request.
"""

from dataclasses import dataclass, field
from typing import AbstractSet, Any, Awaitable, Callable, Dict, List

from connectors.backend.client import BackendApiError
from connectors.backend.gateway import FactoryBackend
from core.observability.logging import get_logger
from reconciliation.ledgers import LedgerSnapshot

logger = get_logger(__name__)


async def fetch_or_fallback(
    label: str,
    fetch: Callable[[], Awaitable[Any]],
    fallback: Any,
    warnings: List[str],
) -> Any:
    """Run one fetch; on a backend error log it, note a warning and return `fallback`."""
    try:
        return await fetch()
    except BackendApiError as e:
        logger.error(f"Failed to load {label}: {e.message}", extra_fields={"status_code": e.status_code})
        warnings.append(f"Could not load {label}: {e.message}")
        return fallback


@dataclass
class PageView:
    """Datasets shown on one page, keyed by name.

    Subclasses list the gateway method behind each dataset in `SOURCES`.
    """
    SOURCES = {}

    data: Dict[str, list] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    async def refresh(self, backend: FactoryBackend, *names: str) -> List[str]:
        """Reload the named datasets (all of them by default)."""
        warnings: List[str] = []
        for name in names or tuple(self.SOURCES):
            fetch = getattr(backend, self.SOURCES[name])
            self.data[name] = await fetch_or_fallback(name, fetch, self.data.get(name, []), warnings)
        self.warnings = warnings
        return warnings

    def get(self, name: str) -> list:
        return self.data.get(name, [])


class DashboardView(PageView):
    SOURCES = {
        "suppliers": "list_suppliers",
        "drivers": "list_drivers",
        "products": "list_products",
        "collections": "list_collections",
        "statistics": "collection_statistics",
        "advances": "list_advances",
        "loans": "list_loans",
    }


class CalculationsView(PageView):
    SOURCES = {"collections": "list_collections"}


class FinancesView(PageView):
    SOURCES = {
        "suppliers": "list_suppliers",
        "advances": "list_advances",
        "loans": "list_loans",
        "payments": "list_payments",
        "collections": "list_collections",
    }

    def snapshot(self, loan_statuses: AbstractSet[str]) -> LedgerSnapshot:
        """The loaded ledgers, for figures recomputed the way payment sync does."""
        return LedgerSnapshot(
            suppliers=self.suppliers,
            collections=self.get("collections"),
            advances=self.advances,
            loans=self.loans,
            payments=self.payments,
            loan_statuses=loan_statuses,
        )

    @property
    def suppliers(self):
        return self.get("suppliers")

    @property
    def advances(self):
        return self.get("advances")

    @property
    def loans(self):
        return self.get("loans")

    @property
    def payments(self):
        return self.get("payments")


class InventoryView(PageView):
    SOURCES = {"products": "list_products"}


class SuppliersView(PageView):
    SOURCES = {"suppliers": "list_suppliers"}


class DriversView(PageView):
    SOURCES = {"drivers": "list_drivers"}


@dataclass
class PageViews:
    """All page views held by one running application."""
    dashboard: DashboardView = field(default_factory=DashboardView)
    calculations: CalculationsView = field(default_factory=CalculationsView)
    finances: FinancesView = field(default_factory=FinancesView)
    inventory: InventoryView = field(default_factory=InventoryView)
    suppliers: SuppliersView = field(default_factory=SuppliersView)
    drivers: DriversView = field(default_factory=DriversView)
