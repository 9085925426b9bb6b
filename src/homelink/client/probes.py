"""Reachability probes for the local server and the cloud relay.

This module provides:
- LocalProber: bounded-latency authenticated probe of the LAN server
- CloudProber: gateway identity lookup plus cloud status query

Probes never raise. Any exception, timeout or non-2xx answer is
reported as "unreachable".
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from homelink.core.errors import HomeLinkError

if TYPE_CHECKING:
    from homelink.client.api import LocalClient
    from homelink.client.cloud import CloudClient

logger = logging.getLogger(__name__)


class LocalProber:
    """Checks whether the local server answers an authenticated request."""

    def __init__(self, client: LocalClient, timeout: float | None = None) -> None:
        """Initialize the prober.

        Args:
            client: Local REST client.
            timeout: Probe bound in seconds (default: config local_probe_timeout).
        """
        self._client = client
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        if self._timeout is not None:
            return self._timeout
        return self._client.config.local_probe_timeout

    async def is_reachable(self) -> bool:
        """Probe the home listing endpoint.

        Returns:
            True if the server answered with a 2xx status in time.
        """
        if not self._client.config.is_configured:
            logger.debug("Local server not configured, skipping probe")
            return False

        timeout = self.timeout
        try:
            response = await asyncio.wait_for(
                self._client.probe_homes(timeout),
                timeout=timeout,
            )
        except TimeoutError:
            logger.info("Local server not reachable (timed out after %.1fs)", timeout)
            return False
        except HomeLinkError as e:
            logger.info("Local server not reachable: %s", e)
            return False
        except Exception as e:
            logger.warning("Local probe failed unexpectedly: %s", e)
            logger.debug("Full traceback:", exc_info=True)
            return False

        if not response.is_success:
            logger.info("Local server not reachable (HTTP %d)", response.status_code)
            return False
        return True

    async def has_cloud_subscription(self, home_id: int) -> bool:
        """Check whether the home has an active cloud subscription.

        Informational only: the result never changes the resolved mode.
        """
        try:
            data = await self._client.get_subscription(home_id)
        except HomeLinkError as e:
            logger.info("No cloud subscription for home %s: %s", home_id, e)
            return False
        return isinstance(data, dict) and data.get("has_cloud_access") is True


class CloudProber:
    """Checks whether the cloud relay knows and answers for our gateway."""

    def __init__(self, client: CloudClient, timeout: float | None = None) -> None:
        """Initialize the prober.

        Args:
            client: Cloud REST client.
            timeout: Probe bound in seconds (default: config cloud_probe_timeout).
        """
        self._client = client
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        if self._timeout is not None:
            return self._timeout
        return self._client.config.cloud_probe_timeout

    async def is_reachable(self, home_id: int | str) -> bool:
        """Probe the cloud status of the paired gateway.

        The cloud counts as reachable when it answers the status query,
        whether the gateway itself reports online or offline. The gateway
        lookup and the status query share one timeout.

        Args:
            home_id: Active home, used for logging only; the request is
                scoped by the gateway identity.
        """
        timeout = self.timeout
        try:
            async with asyncio.timeout(timeout):
                gateway_id = await self._client.get_gateway_id()
                if not gateway_id:
                    logger.info("No gateway identity found, cloud unreachable")
                    return False
                status = await self._client.get_gateway_status(
                    gateway_id, timeout=timeout
                )
        except TimeoutError:
            logger.info("Cloud gateway not reachable (timed out after %.1fs)", timeout)
            return False
        except HomeLinkError as e:
            logger.info("Cloud gateway not reachable: %s", e)
            return False
        except Exception as e:
            logger.warning("Cloud probe failed unexpectedly: %s", e)
            logger.debug("Full traceback:", exc_info=True)
            return False

        state = status.get("status") if isinstance(status, dict) else None
        logger.info("Cloud gateway status for home %s: %s", home_id, state)
        return True
