"""FastAPI server for the tea factory back-office.

Main entry point for the API server.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

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
from api.services.views import PageViews
from connectors.backend.client import (
    BackendApiClient,
    BackendApiConfig,
    BackendApiError,
    BackendConnectionError,
    BackendNotFoundError,
    BackendValidationError,
)
from connectors.backend.gateway import FactoryBackend
from core.config import Settings, get_settings
from core.errors import ValidationFailure
from core.observability.logging import configure_from_settings, get_logger
from tracking.board import DriverBoard
from tracking.feed import LocationFeed

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    configure_from_settings(settings)

    # Startup
    client: Optional[BackendApiClient] = None
    if app.state.backend is None:
        client = BackendApiClient(BackendApiConfig.from_settings(settings))
        await client.connect()
        app.state.backend = FactoryBackend(client)
    logger.info(f"Back-office API starting up (backend {settings.backend_base_url})")

    feed_task = None
    if settings.tracking_enabled:
        feed = LocationFeed(app.state.board, settings)
        feed_task = asyncio.create_task(feed.run())
    else:
        logger.info("PUSHER_KEY not set; live driver tracking disabled")

    yield

    # Shutdown
    try:
        if feed_task is not None:
            await stop_feed(feed_task)
    finally:
        if client is not None:
            await client.disconnect()
            app.state.backend = None
    logger.info("Back-office API shutting down")


async def stop_feed(feed_task: "asyncio.Task") -> None:
    """Cancel the location feed, logging any error it already ended with."""
    feed_task.cancel()
    try:
        await feed_task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Driver location feed had stopped with an error")


# =============================================================================
# ERROR HANDLERS
# =============================================================================

def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message, **extra})


async def validation_failure_handler(request: Request, exc: ValidationFailure) -> JSONResponse:
    return _error(422, str(exc), errors=exc.errors)


async def backend_error_handler(request: Request, exc: BackendApiError) -> JSONResponse:
    if isinstance(exc, BackendNotFoundError):
        status_code = 404
    elif isinstance(exc, BackendValidationError):
        status_code = 400
    elif isinstance(exc, BackendConnectionError):
        status_code = 504
    else:
        status_code = 502
    logger.error(
        f"{request.method} {request.url.path} failed: {exc.message}",
        extra_fields={"backend_status": exc.status_code},
    )
    return _error(status_code, exc.message, backend_status=exc.status_code)


def create_app(settings: Optional[Settings] = None, backend: Optional[FactoryBackend] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration (default: loaded from the environment)
        backend: Gateway to use instead of opening a client on startup
    """
    app = FastAPI(
        title="Tea Factory Back-Office API",
        description="Supplier, driver, finance and inventory administration with payment reconciliation",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings or get_settings()
    app.state.backend = backend
    app.state.views = PageViews()
    app.state.board = DriverBoard()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationFailure, validation_failure_handler)
    app.add_exception_handler(BackendApiError, backend_error_handler)

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(metrics.router, tags=["Health"])
    app.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
    app.include_router(calculations.router, prefix="/calculations", tags=["Calculations"])
    app.include_router(finances.router, prefix="/finances", tags=["Finances"])
    app.include_router(suppliers.router, prefix="/suppliers", tags=["Suppliers"])
    app.include_router(drivers.router, prefix="/drivers", tags=["Drivers"])
    app.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])
    app.include_router(tracking.router, prefix="/tracking", tags=["Tracking"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
