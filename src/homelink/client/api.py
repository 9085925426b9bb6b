"""HTTP client for the local home server API.

This module provides:
- TransportClient: shared request/response handling for both transports
- LocalClient: REST client for the LAN server (``Authorization: Token``)

The cloud relay client lives in ``homelink.client.cloud``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from homelink.client.preferences import LocalSession, PreferenceStore
from homelink.core.config import ConfigProvider, TransportConfig
from homelink.core.errors import (
    AuthenticationError,
    UnreachableError,
    UpstreamError,
)

logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response, default: str) -> tuple[str, Any]:
    """Extract a readable message and the raw body from an error response."""
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"]), body
    if isinstance(body, str) and body:
        return body[:200], body
    return default, body


class TransportClient:
    """Base class holding the HTTP connection and error mapping.

    Subclasses define the base URL, timeout and auth header of their
    transport. The configuration provider is read on every request so a
    changed server address takes effect immediately.
    """

    name = "transport"

    def __init__(
        self,
        config_provider: ConfigProvider,
        preferences: PreferenceStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config_provider: Callable returning the current TransportConfig.
            preferences: Store holding credentials.
            http_client: Optional preconfigured httpx client (tests).
        """
        self._config_provider = config_provider
        self._preferences = preferences
        self._client = http_client or httpx.AsyncClient(
            verify=config_provider().verify_ssl,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> TransportClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    @property
    def config(self) -> TransportConfig:
        return self._config_provider()

    def _base_url(self, config: TransportConfig) -> str:
        raise NotImplementedError

    def _default_timeout(self, config: TransportConfig) -> float:
        raise NotImplementedError

    def _auth_headers(self) -> dict[str, str]:
        return {}

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: float | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        """Send a request, mapping transport failures to UnreachableError."""
        config = self.config
        url = f"{self._base_url(config)}{path}"
        headers = self._auth_headers() if authenticated else {}
        logger.debug("%s API: %s %s", self.name, method, url)
        try:
            return await self._client.request(
                method,
                url,
                json=json,
                headers=headers,
                timeout=timeout if timeout is not None else self._default_timeout(config),
            )
        except httpx.RequestError as e:
            raise UnreachableError(f"{self.name} server unreachable: {e}") from e

    def _handle_response(self, response: httpx.Response) -> Any:
        """Raise typed errors for error statuses, return the parsed body."""
        if response.status_code == 401:
            message, body = _error_detail(response, "Invalid or expired token")
            raise AuthenticationError(message, 401, body)
        if response.status_code >= 400:
            message, body = _error_detail(response, "Unknown error")
            raise UpstreamError(message, response.status_code, body)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: float | None = None,
    ) -> Any:
        """Send an authenticated request and return the parsed body.

        Raises:
            NotConfiguredError: If the transport has no address.
            UnreachableError: If the server could not be reached.
            AuthenticationError: On a 401 answer.
            UpstreamError: On any other error status.
        """
        response = await self._send(method, path, json=json, timeout=timeout)
        return self._handle_response(response)


class LocalClient(TransportClient):
    """REST client for the home's LAN server."""

    name = "local"

    def _base_url(self, config: TransportConfig) -> str:
        return config.local_api_url

    def _default_timeout(self, config: TransportConfig) -> float:
        return config.local_timeout

    def _auth_headers(self) -> dict[str, str]:
        session = self._preferences.get_local_session()
        if session is None:
            return {}
        return {"Authorization": f"Token {session.auth_token}"}

    # === Authentication ===

    async def login(self, username: str, password: str) -> dict[str, Any]:
        """Log in to the local server and store the auth token.

        Returns:
            The login response (``token`` and ``user``).
        """
        response = await self._send(
            "POST",
            "/auth/login/",
            json={"username": username, "password": password},
            authenticated=False,
        )
        data: dict[str, Any] = self._handle_response(response)
        self._preferences.set_local_session(LocalSession(auth_token=data["token"]))
        user = data.get("user") or {}
        logger.info("Logged in to local server as %s", user.get("username", username))
        return data

    def logout(self) -> None:
        self._preferences.clear_local_session()

    # === Homes and devices ===

    async def list_homes(self) -> Any:
        return await self.request("GET", "/homes/")

    async def probe_homes(self, timeout: float) -> httpx.Response:
        """Fetch the home listing without mapping the status to an error."""
        return await self._send("GET", "/homes/", timeout=timeout)

    async def list_devices(self, home_id: int) -> Any:
        return await self.request("GET", f"/homes/{home_id}/devices/")

    async def get_subscription(self, home_id: int) -> Any:
        return await self.request("GET", f"/homes/{home_id}/subscription/")

    # === Control ===

    async def control_entity(self, entity_id: int, payload: dict[str, Any]) -> Any:
        return await self.request(
            "POST", f"/entities/{entity_id}/control/", json=payload
        )

    async def run_scene(self, scene_id: int) -> Any:
        return await self.request("POST", f"/scenes/{scene_id}/run")

    # === Automations and scenes ===

    async def list_automations(self, home_id: int) -> Any:
        return await self.request("GET", f"/homes/{home_id}/automations/")

    async def list_scenes(self, home_id: int) -> Any:
        return await self.request("GET", f"/homes/{home_id}/scenes/")
