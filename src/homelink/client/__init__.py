"""Client module - transports, mode resolution, dispatch and event channel."""

from homelink.client.api import LocalClient, TransportClient
from homelink.client.channel import EntityStateEvent, EventChannel
from homelink.client.cloud import CloudClient
from homelink.client.context import HomeLinkContext, get_config_dir
from homelink.client.dispatcher import CommandDispatcher
from homelink.client.mode import NetworkModeResolver
from homelink.client.preferences import (
    CloudSession,
    LocalSession,
    Preference,
    PreferenceStore,
)
from homelink.client.probes import CloudProber, LocalProber

__all__ = [
    # Transports
    "CloudClient",
    "LocalClient",
    "TransportClient",
    # Core
    "CommandDispatcher",
    "EntityStateEvent",
    "EventChannel",
    "HomeLinkContext",
    "NetworkModeResolver",
    "get_config_dir",
    # Probes
    "CloudProber",
    "LocalProber",
    # Preferences
    "CloudSession",
    "LocalSession",
    "Preference",
    "PreferenceStore",
]
