"""In-process metrics endpoint."""

from typing import Any, Dict

from fastapi import APIRouter

from core.observability.metrics import get_metrics


router = APIRouter()


@router.get("/metrics")
async def metrics_summary() -> Dict[str, Any]:
    """Backend request counts, batch outcomes and timing stats."""
    return get_metrics().get_summary()
