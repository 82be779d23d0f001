"""API Routes Package."""

from api.routes import (
    health,
    metrics,
    dashboard,
    calculations,
    finances,
    suppliers,
    drivers,
    inventory,
    tracking,
)

__all__ = [
    "health",
    "metrics",
    "dashboard",
    "calculations",
    "finances",
    "suppliers",
    "drivers",
    "inventory",
    "tracking",
]
