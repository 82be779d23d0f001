"""Live driver tracking: board state and the location channel."""

from tracking.board import (
    DEFAULT_CENTER,
    DriverBoard,
    TrackedDriver,
    format_location,
    parse_location,
)
from tracking.channel import (
    DRIVER_CHANNEL,
    LOCATION_EVENT,
    ChannelError,
    LocationChannel,
    PusherChannelClient,
    subscribe_driver_locations,
)
from tracking.feed import LocationFeed

__all__ = [
    "DEFAULT_CENTER",
    "DriverBoard",
    "TrackedDriver",
    "format_location",
    "parse_location",
    "DRIVER_CHANNEL",
    "LOCATION_EVENT",
    "ChannelError",
    "LocationChannel",
    "PusherChannelClient",
    "subscribe_driver_locations",
    "LocationFeed",
]
