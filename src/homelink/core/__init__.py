"""Core module - Shared configuration, types, commands and errors."""

from homelink.core.commands import (
    CloudControlCommand,
    ControlCommand,
    LocalControlCommand,
    to_wire,
)
from homelink.core.config import ServerAddress, TransportConfig
from homelink.core.errors import (
    AuthenticationError,
    HomeLinkError,
    MalformedMessageError,
    NotConfiguredError,
    NotPairedError,
    UnreachableError,
    UnsupportedError,
    UpstreamError,
)
from homelink.core.types import ChannelState, TransportMode

__all__ = [
    # Commands
    "CloudControlCommand",
    "ControlCommand",
    "LocalControlCommand",
    "to_wire",
    # Config
    "ServerAddress",
    "TransportConfig",
    # Errors
    "AuthenticationError",
    "HomeLinkError",
    "MalformedMessageError",
    "NotConfiguredError",
    "NotPairedError",
    "UnreachableError",
    "UnsupportedError",
    "UpstreamError",
    # Types
    "ChannelState",
    "TransportMode",
]
