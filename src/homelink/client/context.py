"""Explicitly constructed client context.

This module provides:
- HomeLinkContext: bundles preferences, REST clients, probes, the mode
  resolver, the dispatcher and the event channel with an explicit
  create/dispose lifecycle
- get_config_dir: default configuration directory

One context owns one event channel, so "at most one active channel"
holds per context rather than per process.
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from homelink.client.api import LocalClient
from homelink.client.channel import EventChannel
from homelink.client.cloud import CloudClient
from homelink.client.dispatcher import CommandDispatcher
from homelink.client.mode import NetworkModeResolver
from homelink.client.preferences import PreferenceStore
from homelink.client.probes import CloudProber, LocalProber
from homelink.core.config import TransportConfig
from homelink.core.errors import AuthenticationError
from homelink.core.types import TransportMode

if TYPE_CHECKING:
    from homelink.client.channel import MessageHandler

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "HOMELINK_CONFIG_DIR"


def _session_token(store: PreferenceStore, is_cloud: bool) -> str | None:
    """Return the stored credential for the cloud or local transport."""
    if is_cloud:
        cloud_session = store.get_cloud_session()
        return cloud_session.access_token if cloud_session else None
    local_session = store.get_local_session()
    return local_session.auth_token if local_session else None


def get_config_dir() -> Path:
    """Get the configuration directory for HomeLink.

    Returns:
        ``$HOMELINK_CONFIG_DIR`` or ``~/.homelink``.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".homelink"


class HomeLinkContext:
    """Owns every collaborator of the transport failover core.

    Usage:
        async with HomeLinkContext.create() as ctx:
            await ctx.dispatcher.initialize(home_id=1)
            await ctx.start_channel(1, on_message=print)
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        local: LocalClient,
        cloud: CloudClient,
        resolver: NetworkModeResolver,
        dispatcher: CommandDispatcher,
        channel: EventChannel,
    ) -> None:
        self.preferences = preferences
        self.local = local
        self.cloud = cloud
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.channel = channel
        self._disposed = False

    @classmethod
    def create(
        cls,
        config_dir: Path | None = None,
        preferences: PreferenceStore | None = None,
        channel: EventChannel | None = None,
    ) -> HomeLinkContext:
        """Build a fully wired context.

        Args:
            config_dir: Directory for preferences (default: get_config_dir()).
            preferences: Existing store to use instead of config_dir.
            channel: Event channel to use instead of a websockets-backed one.
        """
        store = preferences or PreferenceStore(config_dir or get_config_dir())

        def config_provider() -> TransportConfig:
            return TransportConfig.from_preferences(store)

        local = LocalClient(config_provider, store)
        cloud = CloudClient(config_provider, store)
        resolver = NetworkModeResolver(store, LocalProber(local), CloudProber(cloud))

        if channel is None:
            config = config_provider()
            channel = EventChannel(
                local_url=config.local_ws_url if config.is_configured else "",
                verify_ssl=config.verify_ssl,
            )
        channel.set_token_provider(functools.partial(_session_token, store))
        dispatcher = CommandDispatcher(local, cloud, resolver, channel)
        return cls(store, local, cloud, resolver, dispatcher, channel)

    @property
    def mode(self) -> TransportMode:
        return self.dispatcher.mode

    async def start_channel(
        self, home_id: int, on_message: MessageHandler | None = None
    ) -> None:
        """Connect the event channel with the credential of the current mode.

        Raises:
            NotConfiguredError: In local mode without a server address.
            AuthenticationError: If the matching session is missing.
        """
        is_cloud = self.dispatcher.mode is TransportMode.CLOUD
        if not is_cloud:
            self.channel.set_url(self.local.config.local_ws_url)
        token = _session_token(self.preferences, is_cloud)
        if token is None:
            where = "the cloud" if is_cloud else "the local server"
            raise AuthenticationError(f"Not logged in to {where}")

        await self.channel.connect(token, home_id, on_message)

    async def dispose(self) -> None:
        """Disconnect the channel and close HTTP clients. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        await self.channel.disconnect()
        await self.local.aclose()
        await self.cloud.aclose()
        logger.debug("HomeLink context disposed")

    async def __aenter__(self) -> HomeLinkContext:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.dispose()
