"""Factory Backend HTTP Client.

Low-level HTTP client for the factory REST backend.
Handles JSON encoding, timeouts, and mapping failures onto typed errors.
Requests are never retried automatically; callers decide whether a failure
aborts their operation or is skipped.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass
import asyncio
import json
import time

import aiohttp

from core.observability.logging import get_logger
from core.observability.metrics import record_request

logger = get_logger(__name__)


class BackendApiError(Exception):
    """Base exception for factory backend errors.

    `message` is the operator-facing text: the backend's own error message
    when it sent one, otherwise a generic description.
    """
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body


class BackendNotFoundError(BackendApiError):
    """Resource not found (404)."""
    pass


class BackendValidationError(BackendApiError):
    """Request rejected by the backend (400/409/422)."""
    pass


class BackendConnectionError(BackendApiError):
    """No response: network failure or timeout."""
    pass


@dataclass
class BackendApiConfig:
    """Configuration for the backend client."""
    base_url: str = "http://localhost:8080"
    api_prefix: str = "/api"
    timeout_seconds: float = 30.0

    def get_base_url(self) -> str:
        """Get the base URL for API calls."""
        return f"{self.base_url.rstrip('/')}{self.api_prefix}"

    @classmethod
    def from_settings(cls, settings) -> "BackendApiConfig":
        return cls(
            base_url=settings.backend_base_url,
            timeout_seconds=settings.backend_timeout_seconds,
        )


def extract_error_message(response_text: str, status: int) -> str:
    """Pull the operator-facing message out of an error body.

    The backend answers failures with either a JSON object carrying
    `message` or `error`, or a plain text body.
    """
    text = (response_text or "").strip()
    if not text:
        return f"Request failed with status {status}"
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return text


class BackendApiClient:
    """HTTP client for the factory backend.

    Provides:
    - JSON requests against `{base_url}/api/...`
    - A total timeout on every request
    - Typed errors carrying the backend's message

    Usage:
        async with BackendApiClient(config) as client:
            suppliers = await client.get("supplier/all")
    """

    def __init__(self, config: BackendApiConfig, session: Optional[aiohttp.ClientSession] = None):
        """Initialize API client.

        Args:
            config: API configuration
            session: Existing session to reuse; the client will not close it
        """
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                }
            )
            self._owns_session = True

    async def disconnect(self) -> None:
        """Close HTTP session."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "BackendApiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _build_url(self, endpoint: str) -> str:
        return f"{self.config.get_base_url()}/{endpoint.lstrip('/')}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make one API request.

        Args:
            method: HTTP method
            endpoint: Path below the API prefix, e.g. "supplierPayment/all"
            data: JSON request body

        Returns:
            Decoded JSON response, or None for empty bodies

        Raises:
            BackendNotFoundError: Resource not found
            BackendValidationError: Request rejected
            BackendConnectionError: Network failure or timeout
            BackendApiError: Other API errors
        """
        if not self._session:
            raise BackendApiError("Not connected. Call connect() first.")

        url = self._build_url(endpoint)
        resource = endpoint.strip("/").split("/", 1)[0]
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        started = time.monotonic()

        try:
            async with self._session.request(method, url, json=data, timeout=timeout) as response:
                response_text = await response.text()
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            duration_ms = (time.monotonic() - started) * 1000
            record_request(method, resource, 0, duration_ms)
            reason = "timed out" if isinstance(e, asyncio.TimeoutError) else f"{type(e).__name__}: {e}"
            logger.warning(f"{method} {url} failed: {reason}")
            raise BackendConnectionError(f"Could not reach backend ({reason})") from e

        duration_ms = (time.monotonic() - started) * 1000
        record_request(method, resource, status, duration_ms)

        if status < 400:
            if status == 204 or not response_text.strip():
                return None
            try:
                return json.loads(response_text)
            except ValueError:
                # Some write endpoints answer with a plain confirmation message
                return {"message": response_text}

        message = extract_error_message(response_text, status)
        logger.warning(
            f"{method} {url} returned {status}: {message}",
            extra_fields={"status_code": status},
        )

        if status == 404:
            raise BackendNotFoundError(message, status, response_text)
        if status in (400, 409, 422):
            raise BackendValidationError(message, status, response_text)
        raise BackendApiError(message, status, response_text)

    async def get(self, endpoint: str) -> Any:
        return await self._request("GET", endpoint)

    async def post(self, endpoint: str, data: Dict[str, Any]) -> Any:
        return await self._request("POST", endpoint, data=data)

    async def put(self, endpoint: str, data: Dict[str, Any]) -> Any:
        return await self._request("PUT", endpoint, data=data)

    async def delete(self, endpoint: str) -> Any:
        return await self._request("DELETE", endpoint)
