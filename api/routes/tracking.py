"""Live driver tracking endpoint."""

from fastapi import APIRouter, Depends

from api.deps import get_backend, get_board
from api.services.views import fetch_or_fallback
from connectors.backend.gateway import FactoryBackend
from models.api_responses import TrackingBoardResponse
from tracking.board import DriverBoard


router = APIRouter()


@router.get("", response_model=TrackingBoardResponse)
async def get_tracking_board(
    backend: FactoryBackend = Depends(get_backend),
    board: DriverBoard = Depends(get_board),
) -> TrackingBoardResponse:
    """Board rows from the driver list, with positions received from the channel."""
    warnings = []
    drivers = await fetch_or_fallback("drivers", backend.list_drivers, None, warnings)
    if drivers is not None:
        board.load(drivers)
    response = board.to_response()
    response.warnings = warnings
    return response
