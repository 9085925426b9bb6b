"""Pytest fixtures for integration tests.

This module provides a fake home server and a fake cloud relay, both real
FastAPI apps served by uvicorn in a background thread, so the client is
exercised over actual HTTP and WebSocket connections.
"""

from __future__ import annotations

import asyncio
import socket
import threading
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any

import pytest
import uvicorn
from fastapi import FastAPI, Header, HTTPException, Request, WebSocket, WebSocketDisconnect
from httpx import Client

HOME_TOKEN = "secret"
CLOUD_TOKEN = "cloud-secret"
GATEWAY_ID = "gw-1"


@dataclass
class FakeBackend:
    """State shared between a fake server's routes and the test."""

    token: str
    delay: float = 0.0
    controls: list[tuple[Any, dict[str, Any]]] = field(default_factory=list)
    sockets: list[WebSocket] = field(default_factory=list)

    def check(self, authorization: str | None, scheme: str) -> None:
        if authorization != f"{scheme} {self.token}":
            raise HTTPException(status_code=401, detail="Invalid token")

    async def broadcast(self, message: dict[str, Any]) -> None:
        for websocket in list(self.sockets):
            await websocket.send_json(message)

    async def serve_events(self, websocket: WebSocket) -> None:
        if websocket.query_params.get("token") != self.token:
            await websocket.close(code=4001)
            return
        await websocket.accept()
        self.sockets.append(websocket)
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            self.sockets = [s for s in self.sockets if s is not websocket]


def create_home_server(backend: FakeBackend) -> FastAPI:
    """LAN server speaking the local API (``Authorization: Token``)."""
    app = FastAPI()

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/homes/")
    async def homes(authorization: str | None = Header(default=None)) -> list[dict[str, Any]]:
        backend.check(authorization, "Token")
        if backend.delay:
            await asyncio.sleep(backend.delay)
        return [{"id": 1, "name": "Home"}]

    @app.get("/api/homes/{home_id}/devices/")
    async def devices(
        home_id: int, authorization: str | None = Header(default=None)
    ) -> list[dict[str, Any]]:
        backend.check(authorization, "Token")
        return [{"id": 42, "name": "Lamp", "home_id": home_id}]

    @app.post("/api/entities/{entity_id}/control/")
    async def control(
        entity_id: int, request: Request, authorization: str | None = Header(default=None)
    ) -> dict[str, Any]:
        backend.check(authorization, "Token")
        body = await request.json()
        backend.controls.append((entity_id, body))
        await backend.broadcast({"type": "entity_state", "entity_id": entity_id, "state": body})
        return {"ok": True}

    @app.websocket("/ws/home/{home_id}/")
    async def events(websocket: WebSocket, home_id: int) -> None:
        await backend.serve_events(websocket)

    return app


def create_cloud_relay(backend: FakeBackend) -> FastAPI:
    """Cloud relay speaking the remote API (``Authorization: Bearer``)."""
    app = FastAPI()

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/remote/gateways")
    async def gateways(
        authorization: str | None = Header(default=None),
    ) -> list[dict[str, Any]]:
        backend.check(authorization, "Bearer")
        return [{"home_id": GATEWAY_ID, "name": "Home"}]

    @app.get("/api/remote/homes/{gateway_id}/status")
    async def status(
        gateway_id: str, authorization: str | None = Header(default=None)
    ) -> dict[str, str]:
        backend.check(authorization, "Bearer")
        if gateway_id != GATEWAY_ID:
            raise HTTPException(status_code=404, detail="Unknown gateway")
        return {"status": "online"}

    @app.post("/api/remote/homes/{gateway_id}/entities/{entity_id}/control")
    async def control(
        gateway_id: str,
        entity_id: int,
        request: Request,
        authorization: str | None = Header(default=None),
    ) -> dict[str, Any]:
        backend.check(authorization, "Bearer")
        body = await request.json()
        backend.controls.append((entity_id, body))
        state = {body["command"]: body["value"]}
        await backend.broadcast({"type": "entity_state", "entity_id": entity_id, "state": state})
        return {"queued": True}

    @app.websocket("/ws/home/{home_id}/")
    async def events(websocket: WebSocket, home_id: int) -> None:
        await backend.serve_events(websocket)

    return app


def free_port(host: str = "127.0.0.1") -> int:
    """Find a port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return int(s.getsockname()[1])


class UvicornTestServer:
    """Uvicorn server running in a background thread for testing."""

    def __init__(self, app: Any, host: str = "127.0.0.1", port: int = 0) -> None:
        self.app = app
        self.host = host
        self.port = port
        self.server: uvicorn.Server | None = None
        self.thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> int:
        """Start the server and return the port."""
        self.port = free_port(self.host)
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
        )
        self.server = uvicorn.Server(config)

        self.thread = threading.Thread(target=self.server.run, daemon=True)
        self.thread.start()

        self._wait_for_ready()
        return self.port

    def _wait_for_ready(self, timeout: float = 5.0) -> None:
        """Wait for the server to be ready to accept connections."""
        start = time.time()
        while time.time() - start < timeout:
            try:
                with Client() as client:
                    response = client.get(f"{self.url}/health")
                    if response.status_code == 200:
                        return
            except Exception:
                pass
            time.sleep(0.1)
        raise RuntimeError("Server failed to start in time")

    def stop(self) -> None:
        """Stop the server."""
        if self.server:
            self.server.should_exit = True
        if self.thread:
            self.thread.join(timeout=5)


@dataclass
class RunningServer:
    """A started fake server and its backend state."""

    backend: FakeBackend
    server: UvicornTestServer

    @property
    def host(self) -> str:
        return self.server.host

    @property
    def port(self) -> int:
        return self.server.port

    @property
    def url(self) -> str:
        return self.server.url


def _run(
    factory: Callable[[FakeBackend], FastAPI], token: str
) -> Generator[RunningServer, None, None]:
    backend = FakeBackend(token=token)
    server = UvicornTestServer(factory(backend))
    server.start()
    yield RunningServer(backend=backend, server=server)
    server.stop()


@pytest.fixture
def home_server() -> Generator[RunningServer, None, None]:
    """Fake LAN home server."""
    yield from _run(create_home_server, HOME_TOKEN)


@pytest.fixture
def cloud_relay() -> Generator[RunningServer, None, None]:
    """Fake cloud relay."""
    yield from _run(create_cloud_relay, CLOUD_TOKEN)


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.05)
