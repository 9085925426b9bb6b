"""Transport configuration for homelink.

This module computes the local server and cloud relay addresses that the
REST clients, the reachability probes and the event channel all share.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from homelink.core.errors import NotConfiguredError

if TYPE_CHECKING:
    from homelink.client.preferences import PreferenceStore

DEFAULT_SERVER_PORT = 8000
DEFAULT_CLOUD_URL = "http://35.209.239.164:8000"
CLOUD_URL_ENV = "HOMELINK_CLOUD_URL"


def _to_ws(url: str) -> str:
    if url.startswith("https://"):
        return "wss://" + url[8:]
    if url.startswith("http://"):
        return "ws://" + url[7:]
    return url


@dataclass(frozen=True)
class ServerAddress:
    """Address of the home's LAN server.

    Attributes:
        host: Hostname or IP address.
        port: TCP port of the server.
    """

    host: str
    port: int = DEFAULT_SERVER_PORT

    @classmethod
    def parse(cls, value: str) -> ServerAddress:
        """Parse ``host`` or ``host:port``.

        Raises:
            ValueError: If the host is empty or the port is not a number.
        """
        host, sep, port = value.strip().rpartition(":")
        if not sep:
            host, port = port, ""
        host = host.strip()
        if not host:
            raise ValueError(f"Invalid server address: {value!r}")
        if not port:
            return cls(host=host)
        if not port.isdigit():
            raise ValueError(f"Invalid server port: {port!r}")
        return cls(host=host, port=int(port))

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api"

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}:{self.port}/ws"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass
class TransportConfig:
    """Addresses and timeouts for both transports.

    Attributes:
        server: Local server address, or None when not configured yet.
        cloud_url: Base URL of the cloud relay.
        local_timeout: Timeout for regular local requests in seconds.
        cloud_timeout: Timeout for regular cloud requests in seconds.
        local_probe_timeout: Upper bound for the local reachability probe.
        cloud_probe_timeout: Upper bound for the cloud reachability probe.
        verify_ssl: Whether to verify TLS certificates.
    """

    server: ServerAddress | None = None
    cloud_url: str = DEFAULT_CLOUD_URL
    local_timeout: float = 8.0
    cloud_timeout: float = 15.0
    local_probe_timeout: float = 2.0
    cloud_probe_timeout: float = 5.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize cloud URL."""
        self.cloud_url = self.cloud_url.rstrip("/")

    @classmethod
    def from_preferences(cls, store: PreferenceStore) -> TransportConfig:
        """Build the configuration from persisted preferences.

        The cloud URL comes from the environment first, then the stored
        preference, then the built-in default.
        """
        cloud_url = (
            os.environ.get(CLOUD_URL_ENV)
            or store.get_cloud_url()
            or DEFAULT_CLOUD_URL
        )
        return cls(server=store.get_server_address(), cloud_url=cloud_url)

    @property
    def is_configured(self) -> bool:
        return self.server is not None

    def require_server(self) -> ServerAddress:
        """Return the local server address.

        Raises:
            NotConfiguredError: If no server address has been set.
        """
        if self.server is None:
            raise NotConfiguredError(
                "Local server not configured. Run 'homelink server set HOST[:PORT]'."
            )
        return self.server

    @property
    def local_api_url(self) -> str:
        return self.require_server().api_url

    @property
    def local_ws_url(self) -> str:
        return self.require_server().ws_url

    @property
    def cloud_api_url(self) -> str:
        return f"{self.cloud_url}/api"

    @property
    def cloud_ws_url(self) -> str:
        return f"{_to_ws(self.cloud_url)}/ws"


ConfigProvider = Callable[[], TransportConfig]
