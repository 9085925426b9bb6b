"""Unified command dispatcher.

This module provides:
- CommandDispatcher: routes domain operations to the local server or the
  cloud relay according to the cached transport mode

The mode is cached from the last ``initialize``/``refresh`` call and is
not re-resolved per operation. Each operation reads it once, so a command
started under one mode completes under that mode even if a refresh lands
meanwhile.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homelink.core.commands import ControlCommand, to_wire
from homelink.core.errors import NotPairedError, UnreachableError, UnsupportedError
from homelink.core.types import TransportMode

if TYPE_CHECKING:
    from homelink.client.api import LocalClient
    from homelink.client.channel import EventChannel
    from homelink.client.cloud import CloudClient
    from homelink.client.mode import NetworkModeResolver

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "No network connection available"


class CommandDispatcher:
    """Routes every domain operation to the transport of the cached mode.

    Usage:
        dispatcher = CommandDispatcher(local, cloud, resolver, channel)
        await dispatcher.initialize(home_id=1)
        homes = await dispatcher.get_homes()
    """

    def __init__(
        self,
        local: LocalClient,
        cloud: CloudClient,
        resolver: NetworkModeResolver,
        channel: EventChannel | None = None,
        initial_mode: TransportMode = TransportMode.LOCAL,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            local: Local server REST client.
            cloud: Cloud relay REST client.
            resolver: Mode resolver used by initialize/refresh.
            channel: Event channel to retarget on mode changes.
            initial_mode: Mode used before the first resolution.
        """
        self._local = local
        self._cloud = cloud
        self._resolver = resolver
        self._channel = channel
        self._mode = initial_mode
        self._home_id: int | None = None
        self._generation = 0

    @property
    def mode(self) -> TransportMode:
        """Current cached mode."""
        return self._mode

    @property
    def home_id(self) -> int | None:
        return self._home_id

    def set_home_id(self, home_id: int) -> None:
        self._home_id = home_id

    def set_mode(self, mode: TransportMode) -> None:
        """Force the cached mode, bypassing resolution."""
        self._generation += 1
        self._apply_mode(mode)

    async def initialize(self, home_id: int | None = None) -> TransportMode:
        """Resolve the mode and cache it.

        When resolutions overlap, only the most recently started one
        updates the cached mode; an older one finishing later is ignored.

        Args:
            home_id: Active home, remembered for later refreshes.

        Returns:
            The mode this call resolved.
        """
        if home_id is not None:
            self._home_id = home_id

        self._generation += 1
        generation = self._generation
        mode = await self._resolver.resolve(self._home_id)

        if generation != self._generation:
            logger.debug("Discarding stale mode resolution: %s", mode.value)
            return mode
        self._apply_mode(mode)
        return mode

    async def refresh(self) -> TransportMode:
        """Re-resolve the mode for the remembered home."""
        return await self.initialize()

    def _apply_mode(self, mode: TransportMode) -> None:
        if mode is not self._mode:
            logger.info("Transport mode changed: %s -> %s", self._mode.value, mode.value)
        self._mode = mode
        if self._channel is not None:
            self._channel.set_cloud_mode(
                mode is TransportMode.CLOUD, self._cloud.config.cloud_ws_url
            )

    async def _require_gateway(self) -> str:
        gateway_id = await self._cloud.get_gateway_id()
        if not gateway_id:
            raise NotPairedError("Gateway not paired with this account")
        return gateway_id

    # === Domain operations ===

    async def get_homes(self) -> Any:
        mode = self._mode
        if mode is TransportMode.LOCAL:
            return await self._local.list_homes()
        if mode is TransportMode.CLOUD:
            return await self._cloud.list_homes()
        raise UnreachableError(OFFLINE_MESSAGE)

    async def get_devices(self, home_id: int) -> Any:
        mode = self._mode
        if mode is TransportMode.LOCAL:
            return await self._local.list_devices(home_id)
        if mode is TransportMode.CLOUD:
            gateway_id = await self._require_gateway()
            return await self._cloud.list_devices(gateway_id)
        raise UnreachableError(OFFLINE_MESSAGE)

    async def control_entity(
        self, entity_id: int, command: str, value: Any = None
    ) -> Any:
        """Send a control command to an entity.

        Args:
            entity_id: Target entity.
            command: Command key (e.g. "value").
            value: Value for the command.
        """
        mode = self._mode
        logger.debug("control_entity: mode=%s, entity=%s", mode.value, entity_id)
        if mode is TransportMode.OFFLINE:
            raise UnreachableError(OFFLINE_MESSAGE)

        wire = to_wire(ControlCommand(attribute=command, value=value), mode)
        if mode is TransportMode.LOCAL:
            return await self._local.control_entity(entity_id, wire.to_payload())
        gateway_id = await self._require_gateway()
        return await self._cloud.control_entity(gateway_id, entity_id, wire.to_payload())

    async def run_scene(self, scene_id: int) -> Any:
        mode = self._mode
        if mode is TransportMode.LOCAL:
            return await self._local.run_scene(scene_id)
        if mode is TransportMode.CLOUD:
            gateway_id = await self._require_gateway()
            return await self._cloud.run_scene(gateway_id, scene_id)
        raise UnreachableError(OFFLINE_MESSAGE)

    async def get_automations(self, home_id: int) -> Any:
        mode = self._mode
        if mode is TransportMode.LOCAL:
            return await self._local.list_automations(home_id)
        if mode is TransportMode.CLOUD:
            raise UnsupportedError("Remote automation listing not yet implemented")
        raise UnreachableError(OFFLINE_MESSAGE)

    async def get_scenes(self, home_id: int) -> Any:
        mode = self._mode
        if mode is TransportMode.LOCAL:
            return await self._local.list_scenes(home_id)
        if mode is TransportMode.CLOUD:
            raise UnsupportedError("Remote scene listing not yet implemented")
        raise UnreachableError(OFFLINE_MESSAGE)
