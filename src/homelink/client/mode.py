"""Network mode resolution.

This module provides:
- NetworkModeResolver: combines the user preference with both probes
  into a single TransportMode

Decision order:
    1. force cloud + cloud enabled + home  -> CLOUD if the cloud answers
    2. probe the local server
    3. local reachable, cloud disabled     -> LOCAL
    4. cloud enabled + home:
         local reachable                   -> LOCAL (local always wins)
         otherwise, cloud reachable        -> CLOUD
    5. local reachable                     -> LOCAL
    6.                                     -> OFFLINE
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homelink.core.types import TransportMode

if TYPE_CHECKING:
    from homelink.client.preferences import PreferenceStore
    from homelink.client.probes import CloudProber, LocalProber

logger = logging.getLogger(__name__)


class NetworkModeResolver:
    """Decides which transport to use for the current session.

    Resolution performs network probes but never raises: probe failures
    are reported as unreachable.
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        local_prober: LocalProber,
        cloud_prober: CloudProber,
    ) -> None:
        self._preferences = preferences
        self._local_prober = local_prober
        self._cloud_prober = cloud_prober

    async def resolve(self, home_id: int | None = None) -> TransportMode:
        """Resolve the transport mode.

        Args:
            home_id: Active home. Cloud access is only considered with one.

        Returns:
            LOCAL, CLOUD or OFFLINE.
        """
        preference = self._preferences.get_preference()
        cloud_enabled = preference.cloud_enabled

        logger.debug(
            "Resolving mode: home=%s, cloud_enabled=%s, force_cloud=%s",
            home_id,
            cloud_enabled,
            preference.force_cloud_only,
        )

        if preference.force_cloud_only and cloud_enabled and home_id is not None:
            if await self._cloud_prober.is_reachable(home_id):
                logger.info("Network mode: CLOUD (forced)")
                return TransportMode.CLOUD
            logger.warning("Force cloud enabled but cloud unreachable, trying local")

        local_available = await self._local_prober.is_reachable()

        if local_available and not cloud_enabled:
            logger.info("Network mode: LOCAL")
            return TransportMode.LOCAL

        if cloud_enabled and home_id is not None:
            if local_available:
                has_access = await self._local_prober.has_cloud_subscription(home_id)
                logger.debug("Cloud subscription for home %s: %s", home_id, has_access)
                logger.info("Network mode: LOCAL (preferred over cloud)")
                return TransportMode.LOCAL

            if await self._cloud_prober.is_reachable(home_id):
                logger.info("Network mode: CLOUD")
                return TransportMode.CLOUD
        elif cloud_enabled:
            logger.debug("Skipping cloud check: no active home")

        if local_available:
            logger.info("Network mode: LOCAL (fallback)")
            return TransportMode.LOCAL

        logger.warning("Network mode: OFFLINE")
        return TransportMode.OFFLINE
