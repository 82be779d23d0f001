"""Driver location channel.

Drivers publish GPS pings on a private Pusher channel. `PusherChannelClient`
speaks the Pusher Channels websocket protocol over aiohttp and authorizes
private channels through the backend's auth endpoint.

`subscribe_driver_locations` scopes a subscription: the handler is bound on
entry, and on exit (normal or error) every handler is unbound and the channel
unsubscribed.
"""

import asyncio
import inspect
import json
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

import aiohttp
from pydantic import ValidationError

from core.models.canonical import DriverLocationUpdate
from core.observability.logging import get_logger, with_correlation

logger = get_logger(__name__)

DRIVER_CHANNEL = "private-drivers"
LOCATION_EVENT = "driver-location-update"

PROTOCOL_VERSION = 7
CLIENT_NAME = "tea-factory-backoffice"
CLIENT_VERSION = "1.0.0"

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]
LocationHandler = Callable[[DriverLocationUpdate], Union[None, Awaitable[None]]]


class ChannelError(Exception):
    """Connecting, authorizing or subscribing to a channel failed."""
    pass


async def _call(handler: Callable, payload: Any) -> None:
    result = handler(payload)
    if inspect.isawaitable(result):
        await result


class LocationChannel(ABC):
    """Pub/sub collaborator delivering driver location events."""

    @abstractmethod
    async def subscribe(self, channel_name: str) -> None:
        ...

    @abstractmethod
    def bind(self, event: str, handler: EventHandler) -> None:
        ...

    @abstractmethod
    def unbind_all(self) -> None:
        ...

    @abstractmethod
    async def unsubscribe(self, channel_name: str) -> None:
        ...

    @abstractmethod
    async def wait_closed(self) -> None:
        """Return once the underlying connection has closed."""
        ...

    async def __aenter__(self) -> "LocationChannel":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


# =============================================================================
# Pusher Channels
# =============================================================================

class PusherChannelClient(LocationChannel):
    """Pusher Channels client on an aiohttp websocket.

    Usage:
        async with PusherChannelClient(key, "ap2", auth_endpoint) as channel:
            await channel.subscribe("private-drivers")
            channel.bind("driver-location-update", on_update)
            await channel.wait_closed()
    """

    def __init__(
        self,
        key: str,
        cluster: str = "ap2",
        auth_endpoint: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        url: Optional[str] = None,
        connect_timeout: float = 30.0,
    ):
        self.key = key
        self.cluster = cluster
        self.auth_endpoint = auth_endpoint
        self.url = url or (
            f"wss://ws-{cluster}.pusher.com/app/{key}"
            f"?protocol={PROTOCOL_VERSION}&client={CLIENT_NAME}&version={CLIENT_VERSION}"
        )
        self.connect_timeout = connect_timeout
        self.socket_id: Optional[str] = None

        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._channels: set = set()
        self._closed = asyncio.Event()

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        """Open the websocket and wait for the connection to be established.

        Raises:
            ChannelError: If the server does not establish the connection
        """
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

        try:
            self._ws = await self._session.ws_connect(self.url, heartbeat=None)
            message = await self._ws.receive_json(timeout=self.connect_timeout)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, TypeError) as e:
            await self.close()
            raise ChannelError(f"Could not connect to channel server: {e}") from e

        if message.get("event") != "pusher:connection_established":
            await self.close()
            raise ChannelError(f"Unexpected handshake event: {message.get('event')}")

        self.socket_id = self._decode(message.get("data")).get("socket_id")
        self._closed.clear()
        self._reader = asyncio.create_task(self._read_loop())
        logger.info(f"Connected to channel server (socket {self.socket_id})")

    async def close(self) -> None:
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            except (ChannelError, aiohttp.ClientError, ConnectionError) as e:
                logger.warning(f"Channel reader stopped with an error: {e}")
        self._reader = None
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None
        self._closed.set()

    async def __aenter__(self) -> "PusherChannelClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def authorize(self, channel_name: str) -> str:
        """Ask the backend to sign a private channel subscription.

        Raises:
            ChannelError: If the auth endpoint refuses or is unreachable
        """
        if not self.auth_endpoint:
            raise ChannelError(f"No auth endpoint configured for {channel_name}")
        form = {"socket_id": self.socket_id or "", "channel_name": channel_name}
        try:
            async with self._session.post(self.auth_endpoint, data=form) as response:
                text = await response.text()
                if response.status >= 400:
                    raise ChannelError(f"Channel auth refused ({response.status}): {text.strip()}")
                body = json.loads(text)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ChannelError(f"Channel auth failed: {e}") from e
        if not isinstance(body, dict) or not body.get("auth"):
            raise ChannelError("Channel auth response carried no signature")
        return body["auth"]

    async def subscribe(self, channel_name: str) -> None:
        if not self.connected:
            raise ChannelError("Not connected. Call connect() first.")
        data: Dict[str, Any] = {"channel": channel_name}
        if channel_name.startswith("private-"):
            data["auth"] = await self.authorize(channel_name)
        await self._send("pusher:subscribe", data)
        self._channels.add(channel_name)
        logger.info(f"Subscribed to {channel_name}")

    async def unsubscribe(self, channel_name: str) -> None:
        self._channels.discard(channel_name)
        if self.connected:
            await self._send("pusher:unsubscribe", {"channel": channel_name})
            logger.info(f"Unsubscribed from {channel_name}")

    def bind(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def unbind_all(self) -> None:
        self._handlers.clear()

    # =========================================================================
    # Wire
    # =========================================================================

    @staticmethod
    def _decode(data: Any) -> Any:
        """Event data arrives as a JSON string inside the JSON frame."""
        if isinstance(data, str):
            try:
                return json.loads(data)
            except ValueError:
                return data
        return data if data is not None else {}

    async def _send(self, event: str, data: Dict[str, Any]) -> None:
        try:
            await self._ws.send_json({"event": event, "data": data})
        except (aiohttp.ClientError, ConnectionError) as e:
            raise ChannelError(f"Could not send {event}: {e}") from e

    async def _read_loop(self) -> None:
        try:
            async for message in self._ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    await self._handle(message.data)
                elif message.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                    break
        finally:
            logger.info("Channel connection closed")
            self._closed.set()

    async def _handle(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed channel frame")
            return

        event = frame.get("event")
        if event == "pusher:ping":
            await self._send("pusher:pong", {})
            return
        if event == "pusher:error":
            logger.warning(f"Channel server error: {self._decode(frame.get('data'))}")
            return
        if event and event.startswith("pusher"):
            return

        payload = self._decode(frame.get("data"))
        for handler in list(self._handlers.get(event, [])):
            try:
                await _call(handler, payload)
            except Exception:
                logger.exception(f"Handler for {event} failed")


# =============================================================================
# Scoped Subscription
# =============================================================================

def location_handler(handler: LocationHandler) -> EventHandler:
    """Wrap a handler so it receives validated `DriverLocationUpdate`s."""
    async def on_event(payload: Any) -> None:
        try:
            update = DriverLocationUpdate.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed location update: {e.error_count()} error(s)")
            return
        with with_correlation(driver_id=update.driver_id):
            await _call(handler, update)

    return on_event


@asynccontextmanager
async def subscribe_driver_locations(
    channel: LocationChannel,
    handler: LocationHandler,
    channel_name: str = DRIVER_CHANNEL,
) -> AsyncIterator[LocationChannel]:
    """Subscribe to driver location updates for the duration of the block.

    Usage:
        async with subscribe_driver_locations(channel, board.apply_location_update):
            await channel.wait_closed()
    """
    try:
        await channel.subscribe(channel_name)
        channel.bind(LOCATION_EVENT, location_handler(handler))
        yield channel
    finally:
        channel.unbind_all()
        await channel.unsubscribe(channel_name)
