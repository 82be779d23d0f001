"""Background task feeding driver location pings into the live board."""

import asyncio
from typing import Callable, Optional

import aiohttp

from core.config import Settings
from core.observability.logging import get_logger
from tracking.board import DriverBoard
from tracking.channel import ChannelError, LocationChannel, PusherChannelClient, subscribe_driver_locations

logger = get_logger(__name__)


class LocationFeed:
    """Keeps the board subscribed to the driver channel while the app runs.

    A dropped connection is reopened after `reconnect_delay` seconds.

    Usage:
        feed = LocationFeed(board, settings)
        task = asyncio.create_task(feed.run())
        ...
        task.cancel()
    """

    def __init__(
        self,
        board: DriverBoard,
        settings: Settings,
        channel_factory: Optional[Callable[[], LocationChannel]] = None,
        reconnect_delay: float = 5.0,
    ):
        self.board = board
        self.settings = settings
        self.channel_factory = channel_factory or self._pusher_channel
        self.reconnect_delay = reconnect_delay

    def _pusher_channel(self) -> LocationChannel:
        return PusherChannelClient(
            key=self.settings.pusher_key,
            cluster=self.settings.pusher_cluster,
            auth_endpoint=self.settings.pusher_auth_endpoint,
        )

    async def run_once(self) -> None:
        """Connect, subscribe and apply updates until the connection closes."""
        channel = self.channel_factory()
        async with channel:
            async with subscribe_driver_locations(
                channel,
                self.board.apply_location_update,
                self.settings.driver_channel,
            ):
                self.board.live = True
                try:
                    await channel.wait_closed()
                finally:
                    self.board.live = False

    async def run(self) -> None:
        while True:
            try:
                await self.run_once()
            except (ChannelError, aiohttp.ClientError, ConnectionError) as e:
                logger.warning(f"Driver location feed unavailable: {e}")
            await asyncio.sleep(self.reconnect_delay)
