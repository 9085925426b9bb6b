"""Live event channel to the home server.

This module provides:
- EventChannel: single persistent WebSocket connection with bounded
  reconnection and one explicit subscriber
- EntityStateEvent: typed view of ``entity_state`` push messages

Architecture:
    Server ─push─► EventChannel ─► subscriber(dict)
                        │
          (on unexpected close: retry every 3s, at most 5 times)

The channel targets the local server or the cloud relay depending on the
last ``set_cloud_mode`` call. A mode change is applied lazily, on the next
connect or reconnect, so a healthy connection is never torn down by a
mode flap. The credential is picked per transport on every connection
attempt: from the token provider when one is set, otherwise the token
given to ``connect`` as long as the transport has not changed since.

State machine:
    CLOSED → CONNECTING → OPEN → CLOSED
                  │                 │
                  └──── failure ────┴─► (reconnect scheduled) → CONNECTING
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import ssl
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import websockets
from websockets.exceptions import WebSocketException

from homelink.core.errors import MalformedMessageError
from homelink.core.types import ChannelState

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0  # seconds
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5

MessageHandler = Callable[[dict[str, Any]], None]
# Called with is_cloud; returns the credential for that transport
TokenProvider = Callable[[bool], "str | None"]
Connector = Callable[..., Awaitable["ClientConnection"]]


@dataclass(frozen=True)
class EntityStateEvent:
    """State change of a single entity.

    Wire shape: ``{"type": "entity_state", "entity_id": ..., "state": ...}``
    """

    entity_id: Any
    state: Any

    @classmethod
    def from_message(cls, data: dict[str, Any]) -> EntityStateEvent | None:
        """Interpret a message, or return None if it is another shape."""
        if data.get("type") != "entity_state" or "entity_id" not in data:
            return None
        return cls(entity_id=data["entity_id"], state=data.get("state"))


def parse_message(message: str | bytes) -> dict[str, Any]:
    """Decode a raw channel message into a JSON object.

    Raises:
        MalformedMessageError: If the payload is not a JSON object.
    """
    if isinstance(message, bytes):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedMessageError("Message is not valid UTF-8") from e
    try:
        data = json.loads(message)
    except json.JSONDecodeError as e:
        raise MalformedMessageError(f"Invalid JSON: {message[:100]!r}") from e
    if not isinstance(data, dict):
        raise MalformedMessageError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class EventChannel:
    """Persistent event connection with bounded reconnection.

    At most one connection is CONNECTING or OPEN at a time: ``connect``
    is a no-op while one is. Unexpected closes are retried after a fixed
    delay, up to a fixed number of attempts; after that the channel stays
    CLOSED until ``connect`` is called again.

    Usage:
        channel = EventChannel(local_url="ws://192.168.1.10:8000/ws")
        await channel.connect(token, home_id=1, on_message=handle)
        ...
        await channel.disconnect()
    """

    def __init__(
        self,
        local_url: str = "",
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS,
        verify_ssl: bool = True,
        connector: Connector | None = None,
        token_provider: TokenProvider | None = None,
    ) -> None:
        """Initialize the channel.

        Args:
            local_url: WebSocket base of the local server (``ws://host:port/ws``).
            reconnect_delay: Fixed delay before each reconnection attempt.
            max_reconnect_attempts: Attempts before giving up.
            verify_ssl: Whether to verify certificates on ``wss://``.
            connector: Coroutine opening the connection (default: websockets.connect).
            token_provider: Source of the credential for the current transport.
        """
        self._local_url = local_url.rstrip("/")
        self._cloud_url = ""
        self._is_cloud = False
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_attempts = max_reconnect_attempts
        self._verify_ssl = verify_ssl
        self._connector: Connector = connector or websockets.connect
        self._token_provider = token_provider

        # Credential given to connect and the transport it was given for
        self._token: str | None = None
        self._token_is_cloud = False

        # Connection state
        self._ws: ClientConnection | None = None
        self._state = ChannelState.CLOSED
        self._should_reconnect = True
        self._reconnect_attempts = 0

        # Tasks
        self._task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._stopped = asyncio.Event()
        self._stopped.set()

        self._subscriber: MessageHandler | None = None

    # === Status ===

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connected(self) -> bool:
        """Check if currently connected."""
        return self._state is ChannelState.OPEN

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def is_cloud(self) -> bool:
        return self._is_cloud

    @property
    def url(self) -> str:
        """WebSocket base used by the next connect."""
        return self._cloud_url if self._is_cloud else self._local_url

    # === Configuration ===

    def set_url(self, local_url: str) -> None:
        """Set the local server WebSocket base."""
        self._local_url = local_url.rstrip("/")
        logger.debug("Event channel local URL set to %s", self._local_url)

    def set_cloud_mode(self, is_cloud: bool, cloud_url: str) -> None:
        """Choose the transport used by future connects.

        Does not touch an existing connection; the change applies on the
        next connect or reconnect.
        """
        if is_cloud != self._is_cloud:
            logger.info(
                "Event channel switching to %s transport on next connect",
                "cloud" if is_cloud else "local",
            )
        self._is_cloud = is_cloud
        self._cloud_url = cloud_url.rstrip("/")

    def set_token_provider(self, provider: TokenProvider | None) -> None:
        """Set the source of credentials read on every connection attempt."""
        self._token_provider = provider

    def set_subscriber(self, handler: MessageHandler | None) -> None:
        """Replace the single message subscriber."""
        self._subscriber = handler

    def build_url(self, token: str, home_id: int | str) -> str:
        return f"{self.url}/home/{home_id}/?{urlencode({'token': token})}"

    # === Lifecycle ===

    async def connect(
        self,
        token: str,
        home_id: int | str,
        on_message: MessageHandler | None = None,
    ) -> None:
        """Open the channel in the background.

        No-op if the channel is already CONNECTING or OPEN. A caller
        initiated connect re-arms reconnection and resets the attempt
        counter.

        Args:
            token: Credential for the current transport, passed as the
                ``token`` query parameter.
            home_id: Home whose events to receive.
            on_message: Subscriber, replacing the current one if given.
        """
        if self._state is not ChannelState.CLOSED:
            logger.info("Event channel already connected or connecting")
            return

        if not self.url:
            logger.error("Event channel URL not set, cannot connect")
            return

        if on_message is not None:
            self.set_subscriber(on_message)

        self._cancel_reconnect()
        self._should_reconnect = True
        self._reconnect_attempts = 0
        self._token = token
        self._token_is_cloud = self._is_cloud
        self._open(home_id)

    async def disconnect(self) -> None:
        """Close the channel and disable reconnection. Idempotent."""
        self._should_reconnect = False
        self._cancel_reconnect()

        ws, task = self._ws, self._task
        if ws is not None:
            with contextlib.suppress(WebSocketException):
                await ws.close()
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._ws = None
        self._task = None
        if self._state is not ChannelState.CLOSED:
            logger.info("Event channel disconnected")
        self._state = ChannelState.CLOSED
        self._stopped.set()

    async def wait_stopped(self) -> None:
        """Wait until the channel is CLOSED with no reconnect pending."""
        await self._stopped.wait()

    async def send(self, data: dict[str, Any]) -> bool:
        """Send a JSON message if the channel is OPEN.

        Returns:
            True if the message was sent.
        """
        if self._ws is None or self._state is not ChannelState.OPEN:
            return False
        await self._ws.send(json.dumps(data))
        return True

    # === Internals ===

    def _current_token(self) -> str | None:
        if self._token_provider is not None:
            token = self._token_provider(self._is_cloud)
            if token:
                return token
        if self._token_is_cloud == self._is_cloud:
            return self._token
        return None

    def _open(self, home_id: int | str) -> None:
        transport = "cloud" if self._is_cloud else "local"
        token = self._current_token()
        if not token or not self.url:
            logger.error(
                "No %s credential or URL for the event channel, not connecting",
                transport,
            )
            self._state = ChannelState.CLOSED
            self._stopped.set()
            return

        url = self.build_url(token, home_id)
        self._state = ChannelState.CONNECTING
        self._stopped.clear()
        logger.info("Connecting event channel (%s) for home %s", transport, home_id)
        self._task = asyncio.create_task(self._run(url, home_id), name="EventChannel")

    def _ssl_context(self, url: str) -> ssl.SSLContext | None:
        if not url.startswith("wss://"):
            return None
        ssl_context = ssl.create_default_context()
        if not self._verify_ssl:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        return ssl_context

    async def _run(self, url: str, home_id: int | str) -> None:
        """Open the connection and pump messages until it closes."""
        try:
            ws = await self._connector(
                url,
                ssl=self._ssl_context(url),
                open_timeout=10,
                close_timeout=5,
            )
        except Exception as e:
            logger.warning("Event channel error: %s", e)
            logger.debug("Full traceback:", exc_info=True)
            self._state = ChannelState.CLOSED
            self._handle_close(home_id)
            return

        self._ws = ws
        self._state = ChannelState.OPEN
        self._reconnect_attempts = 0
        logger.info("Event channel connected")

        try:
            async for message in ws:
                self._handle_message(message)
        except WebSocketException as e:
            logger.warning("Event channel connection lost: %s", e)

        logger.info(
            "Event channel closed (code=%s, reason=%s)",
            getattr(ws, "close_code", None),
            getattr(ws, "close_reason", None),
        )
        self._ws = None
        self._state = ChannelState.CLOSED
        self._handle_close(home_id)

    def _handle_message(self, message: str | bytes) -> None:
        """Parse one message and hand it to the subscriber.

        Malformed payloads are logged and dropped. Subscriber errors are
        logged and never stop the channel.
        """
        try:
            data = parse_message(message)
        except MalformedMessageError as e:
            logger.warning("Dropping malformed event: %s", e)
            return

        event = EntityStateEvent.from_message(data)
        if event is not None:
            logger.debug("Entity %s state: %s", event.entity_id, event.state)

        subscriber = self._subscriber
        if subscriber is None:
            return
        try:
            subscriber(data)
        except Exception:
            logger.exception("Event subscriber failed")

    def _handle_close(self, home_id: int | str) -> None:
        """Schedule a reconnect after an unexpected close, within bounds."""
        self._task = None
        if not self._should_reconnect:
            self._stopped.set()
            return

        if self._reconnect_attempts >= self._max_reconnect_attempts:
            logger.error(
                "Event channel: max reconnection attempts (%d) reached",
                self._max_reconnect_attempts,
            )
            self._stopped.set()
            return

        self._reconnect_attempts += 1
        logger.info(
            "Event channel reconnecting in %.0fs (attempt %d/%d)",
            self._reconnect_delay,
            self._reconnect_attempts,
            self._max_reconnect_attempts,
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_later(home_id), name="EventChannelReconnect"
        )

    async def _reconnect_later(self, home_id: int | str) -> None:
        await asyncio.sleep(self._reconnect_delay)
        self._reconnect_task = None
        if self._should_reconnect and self._state is ChannelState.CLOSED:
            self._open(home_id)
        else:
            self._stopped.set()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_task is not None:
            if self._reconnect_task is not asyncio.current_task():
                self._reconnect_task.cancel()
            self._reconnect_task = None
