"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from api.deps import get_app_settings, get_board
from core.config import Settings
from tracking.board import DriverBoard


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    board: DriverBoard = Depends(get_board),
) -> HealthResponse:
    """Health check endpoint."""
    if not settings.tracking_enabled:
        tracking = "disabled"
    else:
        tracking = "up" if board.live else "down"
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=request.app.version,
        services={
            "api": "up",
            "backend": settings.backend_base_url,
            "tracking": tracking,
        }
    )


@router.get("/ready")
async def readiness_check(request: Request, response: Response) -> Dict[str, str]:
    """Readiness probe: the backend gateway is in place."""
    if request.app.state.backend is None:
        response.status_code = 503
        return {"status": "starting"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}
