"""Request dependencies shared by the routers."""

from fastapi import Depends, Request

from api.services.finances import FinanceService
from api.services.registry import RegistryService
from api.services.views import PageViews
from connectors.backend.gateway import FactoryBackend
from core.config import Settings
from tracking.board import DriverBoard


def get_backend(request: Request) -> FactoryBackend:
    return request.app.state.backend


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_views(request: Request) -> PageViews:
    return request.app.state.views


def get_board(request: Request) -> DriverBoard:
    return request.app.state.board


def get_finance_service(
    backend: FactoryBackend = Depends(get_backend),
    settings: Settings = Depends(get_app_settings),
) -> FinanceService:
    return FinanceService(backend, settings)


def get_registry_service(backend: FactoryBackend = Depends(get_backend)) -> RegistryService:
    return RegistryService(backend)
