"""Runtime settings for the tea factory back-office.

Reads configuration from environment variables, loading a `.env` file at the
repository root first if one exists.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import FrozenSet, Optional

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parents[1] / ".env"
if env_path.exists():
    load_dotenv(env_path)


DEFAULT_BACKEND_URL = "http://localhost:8080"
DEFAULT_TRANSPORT_CHARGE = Decimal("100")
DEFAULT_LOAN_STATUSES = frozenset({"active", "approved", "pending"})


def _parse_statuses(value: Optional[str]) -> FrozenSet[str]:
    """Parse a comma separated status list into a lower-cased set."""
    if not value:
        return DEFAULT_LOAN_STATUSES
    statuses = {s.strip().lower() for s in value.split(",") if s.strip()}
    return frozenset(statuses) or DEFAULT_LOAN_STATUSES


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Back-office configuration.

    Attributes:
        backend_base_url: Root URL of the factory REST backend
        backend_timeout_seconds: Total timeout applied to every backend request
        transport_charge: Fixed transport deduction used by payment sync
        outstanding_loan_statuses: Loan statuses counted as outstanding
        pusher_key: Pusher application key for live driver tracking
        pusher_cluster: Pusher cluster name
        pusher_auth_endpoint: Backend endpoint authorizing private channels
        driver_channel: Channel carrying driver location updates
        log_level: Logging level name
        log_json: Emit JSON log lines instead of human-readable ones
    """
    backend_base_url: str = DEFAULT_BACKEND_URL
    backend_timeout_seconds: float = 30.0
    transport_charge: Decimal = DEFAULT_TRANSPORT_CHARGE
    outstanding_loan_statuses: FrozenSet[str] = field(default=DEFAULT_LOAN_STATUSES)
    pusher_key: Optional[str] = None
    pusher_cluster: str = "ap2"
    pusher_auth_endpoint: Optional[str] = None
    driver_channel: str = "private-drivers"
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def tracking_enabled(self) -> bool:
        return bool(self.pusher_key)


def load_settings() -> Settings:
    """Build settings from the environment.

    Reads:
    - BACKEND_BASE_URL, BACKEND_TIMEOUT_SECONDS
    - TRANSPORT_CHARGE, OUTSTANDING_LOAN_STATUSES
    - PUSHER_KEY, PUSHER_CLUSTER, PUSHER_AUTH_ENDPOINT, DRIVER_CHANNEL
    - LOG_LEVEL, LOG_JSON

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    base_url = os.getenv("BACKEND_BASE_URL", DEFAULT_BACKEND_URL).rstrip("/")
    auth_endpoint = os.getenv("PUSHER_AUTH_ENDPOINT") or f"{base_url}/pusher/auth"

    try:
        timeout = float(os.getenv("BACKEND_TIMEOUT_SECONDS", "30"))
        transport = Decimal(os.getenv("TRANSPORT_CHARGE", str(DEFAULT_TRANSPORT_CHARGE)))
    except (ValueError, ArithmeticError) as e:
        raise ValueError(f"Invalid numeric setting: {e}") from e

    return Settings(
        backend_base_url=base_url,
        backend_timeout_seconds=timeout,
        transport_charge=transport,
        outstanding_loan_statuses=_parse_statuses(os.getenv("OUTSTANDING_LOAN_STATUSES")),
        pusher_key=os.getenv("PUSHER_KEY") or None,
        pusher_cluster=os.getenv("PUSHER_CLUSTER", "ap2"),
        pusher_auth_endpoint=auth_endpoint,
        driver_channel=os.getenv("DRIVER_CHANNEL", "private-drivers"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_parse_bool(os.getenv("LOG_JSON")),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
