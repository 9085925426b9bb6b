"""Shared types for homelink.

This module defines enums used by the mode resolver, the dispatcher
and the event channel.
"""

from __future__ import annotations

from enum import Enum


class TransportMode(str, Enum):
    """Transport chosen for the current session.

    Recomputed on demand by the NetworkModeResolver, never persisted.
    """

    LOCAL = "local"
    CLOUD = "cloud"
    OFFLINE = "offline"

    @property
    def label(self) -> str:
        """Human readable name for status displays."""
        return _MODE_LABELS[self]


_MODE_LABELS = {
    TransportMode.LOCAL: "Local Connection",
    TransportMode.CLOUD: "Cloud Connection",
    TransportMode.OFFLINE: "Offline",
}


class ChannelState(str, Enum):
    """Lifecycle state of the live event channel."""

    CLOSED = "closed"
    CONNECTING = "connecting"
    OPEN = "open"
