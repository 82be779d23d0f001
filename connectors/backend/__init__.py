"""Factory backend connector.

Exposes the HTTP client, its error types and the typed endpoint gateway.
"""

from connectors.backend.client import (
    BackendApiClient,
    BackendApiConfig,
    BackendApiError,
    BackendConnectionError,
    BackendNotFoundError,
    BackendValidationError,
    extract_error_message,
)
from connectors.backend.gateway import FactoryBackend, LEDGER_RESOURCES, parse_rows

__all__ = [
    "BackendApiClient",
    "BackendApiConfig",
    "BackendApiError",
    "BackendConnectionError",
    "BackendNotFoundError",
    "BackendValidationError",
    "extract_error_message",
    "FactoryBackend",
    "LEDGER_RESOURCES",
    "parse_rows",
]
