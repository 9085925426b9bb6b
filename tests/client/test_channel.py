"""Tests for the live event channel."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from homelink.client.channel import EntityStateEvent, EventChannel, parse_message
from homelink.core.errors import MalformedMessageError
from homelink.core.types import ChannelState

LOCAL_WS = "ws://192.168.1.10:8000/ws"
CLOUD_WS = "ws://cloud.test/ws"

CLOSE = object()


class FakeConnection:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self) -> None:
        self.incoming: asyncio.Queue[Any] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None

    def push(self, message: Any) -> None:
        self.incoming.put_nowait(message)

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self.incoming.put_nowait(CLOSE)

    def __aiter__(self) -> FakeConnection:
        return self

    async def __anext__(self) -> Any:
        message = await self.incoming.get()
        if message is CLOSE:
            self.close_code = 1000
            raise StopAsyncIteration
        return message

    async def send(self, data: str) -> None:
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True
        self.incoming.put_nowait(CLOSE)


class FakeConnector:
    """Records connection attempts and hands out FakeConnections."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.urls: list[str] = []
        self.connections: list[FakeConnection] = []
        self.connected = asyncio.Event()

    async def __call__(self, url: str, **kwargs: Any) -> FakeConnection:
        self.urls.append(url)
        if self.fail:
            raise OSError("Connection refused")
        connection = FakeConnection()
        self.connections.append(connection)
        self.connected.set()
        return connection

    async def wait_connected(self) -> FakeConnection:
        await asyncio.wait_for(self.connected.wait(), 1)
        self.connected.clear()
        return self.connections[-1]


async def settle() -> None:
    """Let background channel tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


class TestParseMessage:
    """Tests for parse_message and EntityStateEvent."""

    def test_object(self) -> None:
        assert parse_message('{"type": "ping"}') == {"type": "ping"}

    def test_bytes(self) -> None:
        assert parse_message(b'{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", "42", b"\xff\xfe"])
    def test_malformed(self, raw: str | bytes) -> None:
        with pytest.raises(MalformedMessageError):
            parse_message(raw)

    def test_entity_state_event(self) -> None:
        event = EntityStateEvent.from_message(
            {"type": "entity_state", "entity_id": 42, "state": {"value": "ON"}}
        )
        assert event == EntityStateEvent(entity_id=42, state={"value": "ON"})

    def test_other_message_is_not_entity_state(self) -> None:
        assert EntityStateEvent.from_message({"type": "ping"}) is None


class TestEventChannelUrls:
    """Tests for URL selection."""

    def test_local_url(self) -> None:
        channel = EventChannel(local_url=LOCAL_WS + "/")
        assert channel.url == LOCAL_WS
        assert channel.build_url("t k", 1) == f"{LOCAL_WS}/home/1/?token=t+k"

    def test_cloud_mode(self) -> None:
        channel = EventChannel(local_url=LOCAL_WS)
        channel.set_cloud_mode(True, CLOUD_WS)
        assert channel.is_cloud
        assert channel.build_url("abc", 2) == f"{CLOUD_WS}/home/2/?token=abc"

        channel.set_cloud_mode(False, CLOUD_WS)
        assert channel.url == LOCAL_WS

    @pytest.mark.asyncio
    async def test_connect_without_url_is_noop(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(connector=connector)

        await channel.connect("tok", 1)

        assert channel.state is ChannelState.CLOSED
        assert connector.urls == []


class TestEventChannelLifecycle:
    """Tests for connect, messages and disconnect."""

    @pytest.mark.asyncio
    async def test_connect_and_receive(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, connector=connector)
        received: list[dict[str, Any]] = []

        await channel.connect("tok", 1, on_message=received.append)
        assert channel.state is ChannelState.CONNECTING
        connection = await connector.wait_connected()
        await settle()
        assert channel.connected

        connection.push(json.dumps({"type": "entity_state", "entity_id": 42, "state": 1}))
        await settle()

        assert received == [{"type": "entity_state", "entity_id": 42, "state": 1}]
        assert connector.urls == [f"{LOCAL_WS}/home/1/?token=tok"]
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self) -> None:
        """A second connect while connected does not open another connection."""
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, connector=connector)

        await channel.connect("tok", 1)
        await connector.wait_connected()
        await settle()
        await channel.connect("tok", 1)
        await settle()

        assert len(connector.urls) == 1
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_malformed_message_keeps_channel_open(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, connector=connector)
        received: list[dict[str, Any]] = []

        await channel.connect("tok", 1, on_message=received.append)
        connection = await connector.wait_connected()
        connection.push("{broken")
        connection.push("[1, 2, 3]")
        connection.push('{"type": "ping"}')
        await settle()

        assert received == [{"type": "ping"}]
        assert channel.connected
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_subscriber_error_keeps_channel_open(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, connector=connector)
        calls: list[dict[str, Any]] = []

        def handler(data: dict[str, Any]) -> None:
            calls.append(data)
            raise RuntimeError("boom")

        await channel.connect("tok", 1, on_message=handler)
        connection = await connector.wait_connected()
        connection.push('{"n": 1}')
        connection.push('{"n": 2}')
        await settle()

        assert calls == [{"n": 1}, {"n": 2}]
        assert channel.connected
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_send(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, connector=connector)

        assert await channel.send({"type": "ping"}) is False
        await channel.connect("tok", 1)
        connection = await connector.wait_connected()
        await settle()

        assert await channel.send({"type": "ping"}) is True
        assert connection.sent == ['{"type": "ping"}']
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect_stops_reconnection(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, reconnect_delay=0, connector=connector)

        await channel.connect("tok", 1)
        connection = await connector.wait_connected()
        await channel.disconnect()
        await settle()

        assert connection.closed
        assert channel.state is ChannelState.CLOSED
        assert not channel.reconnect_pending
        assert len(connector.urls) == 1
        await asyncio.wait_for(channel.wait_stopped(), 1)

    @pytest.mark.asyncio
    async def test_disconnect_is_idempotent(self) -> None:
        channel = EventChannel(local_url=LOCAL_WS, connector=FakeConnector())
        await channel.disconnect()
        await channel.disconnect()
        assert channel.state is ChannelState.CLOSED

    @pytest.mark.asyncio
    async def test_cloud_mode_applies_on_next_connect(self) -> None:
        """Switching mode leaves the open connection alone."""
        connector = FakeConnector()
        channel = EventChannel(
            local_url=LOCAL_WS,
            reconnect_delay=0,
            connector=connector,
            token_provider=lambda is_cloud: "cloud-tok" if is_cloud else "tok",
        )

        await channel.connect("tok", 1)
        connection = await connector.wait_connected()
        await settle()
        channel.set_cloud_mode(True, CLOUD_WS)
        await settle()

        assert channel.connected
        assert not connection.closed

        connection.drop()
        await connector.wait_connected()
        assert connector.urls[-1] == f"{CLOUD_WS}/home/1/?token=cloud-tok"
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_reconnect_never_sends_local_token_to_cloud(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, reconnect_delay=0, connector=connector)

        await channel.connect("tok", 1)
        connection = await connector.wait_connected()
        channel.set_cloud_mode(True, CLOUD_WS)
        connection.drop()
        await asyncio.wait_for(channel.wait_stopped(), 1)

        assert connector.urls == [f"{LOCAL_WS}/home/1/?token=tok"]
        assert channel.state is ChannelState.CLOSED
        assert not channel.reconnect_pending

    @pytest.mark.asyncio
    async def test_token_provider_is_read_on_every_attempt(self) -> None:
        tokens = iter(["first", "refreshed"])
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, reconnect_delay=0, connector=connector)
        channel.set_token_provider(lambda is_cloud: next(tokens))

        await channel.connect("ignored", 1)
        first = await connector.wait_connected()
        first.drop()
        await connector.wait_connected()

        assert connector.urls == [
            f"{LOCAL_WS}/home/1/?token=first",
            f"{LOCAL_WS}/home/1/?token=refreshed",
        ]
        await channel.disconnect()


class TestEventChannelReconnect:
    """Tests for bounded reconnection."""

    @pytest.mark.asyncio
    async def test_reconnects_after_server_close(self) -> None:
        connector = FakeConnector()
        channel = EventChannel(local_url=LOCAL_WS, reconnect_delay=0, connector=connector)

        await channel.connect("tok", 1)
        first = await connector.wait_connected()
        first.drop()
        await connector.wait_connected()
        await settle()

        assert len(connector.urls) == 2
        assert channel.connected
        assert channel.reconnect_attempts == 0
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self) -> None:
        """One initial attempt plus five retries, then CLOSED for good."""
        connector = FakeConnector(fail=True)
        channel = EventChannel(local_url=LOCAL_WS, reconnect_delay=0, connector=connector)

        await channel.connect("tok", 1)
        await asyncio.wait_for(channel.wait_stopped(), 2)

        assert len(connector.urls) == 6
        assert channel.reconnect_attempts == 5
        assert channel.state is ChannelState.CLOSED
        assert not channel.reconnect_pending

    @pytest.mark.asyncio
    async def test_caller_connect_resets_attempts(self) -> None:
        connector = FakeConnector(fail=True)
        channel = EventChannel(
            local_url=LOCAL_WS,
            reconnect_delay=0,
            max_reconnect_attempts=2,
            connector=connector,
        )

        await channel.connect("tok", 1)
        await asyncio.wait_for(channel.wait_stopped(), 2)
        assert len(connector.urls) == 3

        connector.fail = False
        await channel.connect("tok", 1)
        await connector.wait_connected()
        await settle()

        assert channel.connected
        assert channel.reconnect_attempts == 0
        await channel.disconnect()

    @pytest.mark.asyncio
    async def test_waits_delay_before_reconnecting(self) -> None:
        connector = FakeConnector(fail=True)
        channel = EventChannel(local_url=LOCAL_WS, reconnect_delay=10, connector=connector)

        await channel.connect("tok", 1)
        await settle()

        assert len(connector.urls) == 1
        assert channel.reconnect_pending
        assert channel.reconnect_attempts == 1
        await channel.disconnect()
        assert not channel.reconnect_pending
