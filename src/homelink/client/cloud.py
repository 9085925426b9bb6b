"""HTTP client for the cloud relay API.

This module provides:
- CloudClient: REST client for remote access through the cloud relay

Requests carry ``Authorization: Bearer <access token>``. On a 401 the
client refreshes the access token once and replays the request; if the
refresh fails the stored session is cleared.
"""

from __future__ import annotations

import logging
from typing import Any

from homelink.client.api import TransportClient
from homelink.client.preferences import CloudSession
from homelink.core.config import TransportConfig
from homelink.core.errors import AuthenticationError

logger = logging.getLogger(__name__)


class CloudClient(TransportClient):
    """REST client for the cloud relay."""

    name = "cloud"

    def _base_url(self, config: TransportConfig) -> str:
        return config.cloud_api_url

    def _default_timeout(self, config: TransportConfig) -> float:
        return config.cloud_timeout

    def _auth_headers(self) -> dict[str, str]:
        session = self._preferences.get_cloud_session()
        if session is None:
            return {}
        return {"Authorization": f"Bearer {session.access_token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request, refreshing the access token once on 401."""
        response = await self._send(method, path, json=json, timeout=timeout)
        if response.status_code == 401 and await self._refresh_access_token():
            response = await self._send(method, path, json=json, timeout=timeout)
        return self._handle_response(response)

    async def _refresh_access_token(self) -> bool:
        """Exchange the refresh token for a new access token.

        Returns:
            True if a new access token was stored.

        Raises:
            AuthenticationError: If the refresh was rejected.
        """
        session = self._preferences.get_cloud_session()
        if session is None or not session.refresh_token:
            return False

        logger.info("Cloud access token expired, refreshing")
        response = await self._send(
            "POST",
            "/auth/token/refresh/",
            json={"refresh": session.refresh_token},
            authenticated=False,
        )
        if response.status_code != 200:
            self._preferences.clear_cloud_session()
            raise AuthenticationError(
                "Cloud session expired, please log in again",
                response.status_code,
            )
        access = response.json()["access"]
        self._preferences.set_cloud_session(
            CloudSession(access_token=access, refresh_token=session.refresh_token)
        )
        return True

    # === Authentication ===

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in to the cloud and store tokens and accessible homes.

        Returns:
            The login response (``access``, ``refresh``, ``homes``, ``user``).
        """
        response = await self._send(
            "POST",
            "/auth/login",
            json={"email": email, "password": password},
            authenticated=False,
        )
        data: dict[str, Any] = self._handle_response(response)
        self._preferences.set_cloud_session(
            CloudSession(access_token=data["access"], refresh_token=data.get("refresh"))
        )
        homes = data.get("homes") or []
        self._preferences.set_cloud_homes(homes)
        user = data.get("user") or {}
        logger.info(
            "Logged in as %s, accessible homes: %d",
            user.get("email", email),
            len(homes),
        )
        return data

    def logout(self) -> None:
        """Forget the cloud session and the cached gateway identity."""
        self._preferences.clear_cloud_session()
        self._preferences.clear_gateway_id()

    def get_stored_homes(self) -> list[Any]:
        return self._preferences.get_cloud_homes()

    # === Pairing ===

    async def request_pairing_code(
        self, home_name: str | None = None, expiry_minutes: int = 10
    ) -> Any:
        """Ask the cloud for a pairing code to enter on the gateway.

        Returns:
            ``{"code", "expires_at", "message"}``.
        """
        return await self.request(
            "POST",
            "/gateways/request-pairing",
            json={"home_name": home_name or "My Home", "expiry_minutes": expiry_minutes},
        )

    async def verify_pairing_code(self, code: str) -> Any:
        return await self.request("GET", f"/gateways/verify-pairing/{code}")

    async def list_gateways(self) -> Any:
        return await self.request("GET", "/gateways/")

    # === Gateway identity ===

    async def get_remote_gateways(self) -> Any:
        return await self.request("GET", "/remote/gateways")

    async def get_gateway_id(self) -> str | None:
        """Resolve the gateway identity, cached in the preference store.

        On a cache miss the first gateway returned by the cloud is used.

        Returns:
            The gateway identity, or None if the account has no gateway.

        Raises:
            UnreachableError: If the cloud could not be reached.
            UpstreamError: If the cloud rejected the lookup.
        """
        cached = self._preferences.get_gateway_id()
        if cached:
            return cached

        gateways = await self.get_remote_gateways()
        if not gateways:
            logger.info("No gateway registered with this cloud account")
            return None
        gateway_id = gateways[0].get("home_id") if isinstance(gateways[0], dict) else None
        if not gateway_id:
            return None
        gateway_id = str(gateway_id)
        self._preferences.set_gateway_id(gateway_id)
        return gateway_id

    async def get_gateway_status(
        self, gateway_id: str, timeout: float | None = None
    ) -> Any:
        return await self.request(
            "GET", f"/remote/homes/{gateway_id}/status", timeout=timeout
        )

    # === Homes and devices ===

    async def list_homes(self) -> Any:
        return await self.request("GET", "/homes/")

    async def list_devices(self, gateway_id: str) -> Any:
        return await self.request("GET", f"/homes/{gateway_id}/devices/")

    # === Control ===

    async def control_entity(
        self, gateway_id: str, entity_id: int, payload: dict[str, Any]
    ) -> Any:
        return await self.request(
            "POST",
            f"/remote/homes/{gateway_id}/entities/{entity_id}/control",
            json=payload,
        )

    async def run_scene(self, gateway_id: str, scene_id: int) -> Any:
        return await self.request(
            "POST", f"/remote/homes/{gateway_id}/scenes/{scene_id}/run"
        )
