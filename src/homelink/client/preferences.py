"""Persistent preference store for the HomeLink client.

This module provides:
- PreferenceStore: durable key/value storage for user choices
- Preference, LocalSession, CloudSession: typed views over stored values

Plain settings live in ``preferences.json`` inside the config directory.
Credentials are kept in the OS keyring. Every write replaces a whole
value, so no transactional guarantees are needed.
"""

from __future__ import annotations

import contextlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from homelink.core.config import DEFAULT_SERVER_PORT, ServerAddress

logger = logging.getLogger(__name__)

PREFERENCES_FILE = "preferences.json"
KEYRING_SERVICE = "homelink"

# Preference keys
CLOUD_ENABLED_KEY = "cloud_enabled"
FORCE_CLOUD_KEY = "force_cloud_only"
SERVER_HOST_KEY = "server_host"
SERVER_PORT_KEY = "server_port"
GATEWAY_ID_KEY = "gateway_id"
CLOUD_URL_KEY = "cloud_url"
CLOUD_HOMES_KEY = "cloud_homes"
ACTIVE_HOME_KEY = "active_home_id"

# Keyring entries
LOCAL_TOKEN_SECRET = "local_auth_token"
CLOUD_ACCESS_SECRET = "cloud_access_token"
CLOUD_REFRESH_SECRET = "cloud_refresh_token"


@dataclass(frozen=True)
class Preference:
    """User transport preference.

    Attributes:
        cloud_enabled: Whether the cloud relay may be used.
        force_cloud_only: Try the cloud before the local server.
    """

    cloud_enabled: bool = False
    force_cloud_only: bool = False


@dataclass(frozen=True)
class LocalSession:
    """Credentials for the local server."""

    auth_token: str


@dataclass(frozen=True)
class CloudSession:
    """Credentials for the cloud relay."""

    access_token: str
    refresh_token: str | None = None


class PreferenceStore:
    """JSON file plus keyring backed preference storage.

    Usage:
        store = PreferenceStore(Path.home() / ".homelink")
        store.set_cloud_enabled(True)
        store.get_preference()
    """

    def __init__(self, config_dir: Path) -> None:
        """Initialize the store.

        Args:
            config_dir: Directory holding preferences.json.
        """
        self._config_dir = Path(config_dir)
        self._path = self._config_dir / PREFERENCES_FILE

    @property
    def path(self) -> Path:
        """Path of the preferences file."""
        return self._path

    # === Raw access ===

    def load(self) -> dict[str, Any]:
        """Load all stored values, or an empty dict if nothing is stored."""
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable preferences file %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed preferences file %s", self._path)
            return {}
        return data

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Overwrite a single value."""
        self.update({key: value})

    def update(self, values: dict[str, Any]) -> None:
        """Overwrite several values in one write."""
        data = self.load()
        data.update(values)
        self._write(data)

    def remove(self, *keys: str) -> None:
        data = self.load()
        for key in keys:
            data.pop(key, None)
        self._write(data)

    def _write(self, data: dict[str, Any]) -> None:
        self._config_dir.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    # === Transport preference ===

    def get_preference(self) -> Preference:
        """Read the cloud preferences (defaults to both disabled)."""
        data = self.load()
        return Preference(
            cloud_enabled=bool(data.get(CLOUD_ENABLED_KEY, False)),
            force_cloud_only=bool(data.get(FORCE_CLOUD_KEY, False)),
        )

    def set_cloud_enabled(self, enabled: bool) -> None:
        self.set(CLOUD_ENABLED_KEY, enabled)
        logger.info("Cloud mode %s", "enabled" if enabled else "disabled")

    def set_force_cloud_only(self, enabled: bool) -> None:
        self.set(FORCE_CLOUD_KEY, enabled)
        logger.info("Force cloud only %s", "enabled" if enabled else "disabled")

    # === Server address ===

    def get_server_address(self) -> ServerAddress | None:
        """Get the configured local server, or None if never configured."""
        data = self.load()
        host = data.get(SERVER_HOST_KEY)
        if not host:
            return None
        port = data.get(SERVER_PORT_KEY) or DEFAULT_SERVER_PORT
        return ServerAddress(host=host, port=int(port))

    def set_server_address(self, address: ServerAddress) -> None:
        self.update({SERVER_HOST_KEY: address.host, SERVER_PORT_KEY: address.port})
        logger.info("Server config saved: %s", address)

    def clear_server_address(self) -> None:
        self.remove(SERVER_HOST_KEY, SERVER_PORT_KEY)
        logger.info("Server config cleared")

    def get_cloud_url(self) -> str | None:
        return self.get(CLOUD_URL_KEY)

    def set_cloud_url(self, url: str) -> None:
        self.set(CLOUD_URL_KEY, url.rstrip("/"))

    # === Gateway identity ===

    def get_gateway_id(self) -> str | None:
        return self.get(GATEWAY_ID_KEY) or None

    def set_gateway_id(self, gateway_id: str) -> None:
        self.set(GATEWAY_ID_KEY, gateway_id)

    def clear_gateway_id(self) -> None:
        self.remove(GATEWAY_ID_KEY)

    # === Homes ===

    def get_cloud_homes(self) -> list[Any]:
        homes = self.get(CLOUD_HOMES_KEY, [])
        return list(homes) if isinstance(homes, list) else []

    def set_cloud_homes(self, homes: list[Any]) -> None:
        self.set(CLOUD_HOMES_KEY, homes)

    def get_active_home_id(self) -> int | None:
        value = self.get(ACTIVE_HOME_KEY)
        return int(value) if value is not None else None

    def set_active_home_id(self, home_id: int) -> None:
        self.set(ACTIVE_HOME_KEY, home_id)

    # === Secrets ===

    def get_secret(self, name: str) -> str | None:
        """Read a credential from the OS keyring."""
        try:
            return keyring.get_password(KEYRING_SERVICE, name)
        except KeyringError as e:
            logger.warning("Keyring unavailable, cannot read %s: %s", name, e)
            return None

    def set_secret(self, name: str, value: str) -> None:
        """Store a credential in the OS keyring.

        Raises:
            KeyringError: If no usable keyring backend is available.
        """
        keyring.set_password(KEYRING_SERVICE, name, value)

    def delete_secret(self, name: str) -> None:
        with contextlib.suppress(PasswordDeleteError):
            keyring.delete_password(KEYRING_SERVICE, name)

    # === Sessions ===

    def get_local_session(self) -> LocalSession | None:
        token = self.get_secret(LOCAL_TOKEN_SECRET)
        return LocalSession(auth_token=token) if token else None

    def set_local_session(self, session: LocalSession) -> None:
        self.set_secret(LOCAL_TOKEN_SECRET, session.auth_token)

    def clear_local_session(self) -> None:
        self.delete_secret(LOCAL_TOKEN_SECRET)

    def get_cloud_session(self) -> CloudSession | None:
        access = self.get_secret(CLOUD_ACCESS_SECRET)
        if not access:
            return None
        return CloudSession(
            access_token=access,
            refresh_token=self.get_secret(CLOUD_REFRESH_SECRET),
        )

    def set_cloud_session(self, session: CloudSession) -> None:
        self.set_secret(CLOUD_ACCESS_SECRET, session.access_token)
        if session.refresh_token:
            self.set_secret(CLOUD_REFRESH_SECRET, session.refresh_token)

    def clear_cloud_session(self) -> None:
        self.delete_secret(CLOUD_ACCESS_SECRET)
        self.delete_secret(CLOUD_REFRESH_SECRET)
        self.remove(CLOUD_HOMES_KEY)
