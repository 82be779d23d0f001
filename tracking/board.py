"""Live driver board.

Holds the rows shown on the live tracking page and applies location pings
to them. Locations are kept as display strings ("Lat: 6.92710, Lon:
79.86120") and parsed back into coordinates for the map.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from core.models.canonical import Driver, DriverLocationUpdate
from core.observability.logging import get_logger
from models.api_responses import TrackedDriverResponse, TrackingBoardResponse

logger = get_logger(__name__)

# Centre of Sri Lanka, used until some driver has a known position
DEFAULT_CENTER: Tuple[float, float] = (7.8731, 80.7718)

UNKNOWN_LOCATION = "Unknown"
NEVER_UPDATED = "Never"
DEFAULT_STATUS = "Idle"
COLLECTING_STATUS = "Collecting"

_LOCATION_RE = re.compile(r"Lat:\s*(-?\d+(?:\.\d+)?)\s*,\s*Lon:\s*(-?\d+(?:\.\d+)?)")


def format_location(latitude: float, longitude: float) -> str:
    return f"Lat: {latitude:.5f}, Lon: {longitude:.5f}"


def parse_location(text: Optional[str]) -> Optional[Tuple[float, float]]:
    """(lat, lon) from a location string, or None if it holds no position."""
    if not text:
        return None
    match = _LOCATION_RE.search(text)
    if not match:
        return None
    return float(match.group(1)), float(match.group(2))


def _clock_label() -> str:
    return datetime.now().strftime("%I:%M:%S %p")


@dataclass
class TrackedDriver:
    """One row on the live board."""
    id: str
    name: str
    vehicle: str = ""
    route: str = ""
    status: str = DEFAULT_STATUS
    last_update: str = NEVER_UPDATED
    location: str = UNKNOWN_LOCATION

    @classmethod
    def from_driver(cls, driver: Driver) -> "TrackedDriver":
        location = UNKNOWN_LOCATION
        if driver.latitude is not None and driver.longitude is not None:
            location = format_location(driver.latitude, driver.longitude)
        return cls(
            id=driver.driver_id,
            name=driver.full_name,
            vehicle=driver.vehicle_number or "",
            route=driver.route or "",
            status=driver.status or DEFAULT_STATUS,
            last_update=driver.last_updated or NEVER_UPDATED,
            location=location,
        )

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        return parse_location(self.location)

    def to_response(self) -> TrackedDriverResponse:
        return TrackedDriverResponse(
            id=self.id,
            name=self.name,
            vehicle=self.vehicle,
            route=self.route,
            status=self.status,
            last_update=self.last_update,
            location=self.location,
            coordinates=self.coordinates,
        )


class DriverBoard:
    """Rows of the live tracking page, keyed by driver id.

    Usage:
        board = DriverBoard.from_drivers(await backend.list_drivers())
        board.apply_location_update(update)
    """

    def __init__(self, clock: Callable[[], str] = _clock_label):
        self._rows: Dict[str, TrackedDriver] = {}
        self.clock = clock
        self.live = False

    @classmethod
    def from_drivers(cls, drivers: Iterable[Driver], **kwargs) -> "DriverBoard":
        board = cls(**kwargs)
        board.load(drivers)
        return board

    def load(self, drivers: Iterable[Driver]) -> None:
        """Rebuild the rows from the driver list, keeping positions already received."""
        rows = {}
        for driver in drivers:
            row = TrackedDriver.from_driver(driver)
            previous = self._rows.get(row.id)
            if previous is not None and previous.coordinates is not None:
                row.location = previous.location
                row.last_update = previous.last_update
                row.status = previous.status
            rows[row.id] = row
        self._rows = rows

    @property
    def rows(self) -> List[TrackedDriver]:
        return list(self._rows.values())

    def get(self, driver_id: str) -> Optional[TrackedDriver]:
        return self._rows.get(str(driver_id))

    def apply_location_update(self, update: DriverLocationUpdate) -> bool:
        """Move the matching driver and mark it collecting.

        Returns:
            False when no driver on the board has the update's id
        """
        row = self._rows.get(str(update.driver_id))
        if row is None:
            logger.debug(f"Location update for unknown driver {update.driver_id} ignored")
            return False
        row.location = format_location(update.latitude, update.longitude)
        row.last_update = self.clock()
        row.status = COLLECTING_STATUS
        return True

    def map_center(self) -> Tuple[float, float]:
        """Position of the first driver with a known location, else the default centre."""
        for row in self._rows.values():
            coordinates = row.coordinates
            if coordinates is not None:
                return coordinates
        return DEFAULT_CENTER

    def to_response(self) -> TrackingBoardResponse:
        return TrackingBoardResponse(
            drivers=[row.to_response() for row in self._rows.values()],
            map_center=self.map_center(),
            live=self.live,
        )
