"""Entity control commands and their wire shapes.

The local server and the cloud relay expect different bodies for the
same control action:

    local:  {"<attribute>": value}
    cloud:  {"command": "<attribute>", "value": value}

``ControlCommand`` is the transport-neutral form; ``to_wire`` maps it
to the shape of the transport in use.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from homelink.core.errors import UnsupportedError
from homelink.core.types import TransportMode


@dataclass(frozen=True)
class ControlCommand:
    """Transport-neutral control command.

    Attributes:
        attribute: Command key understood by the entity (e.g. "value", "brightness").
        value: Value to apply, or None for value-less commands.
    """

    attribute: str
    value: Any = None


@dataclass(frozen=True)
class LocalControlCommand:
    """Control body for the local server."""

    attribute: str
    value: Any = None

    def to_payload(self) -> dict[str, Any]:
        return {self.attribute: self.value}


@dataclass(frozen=True)
class CloudControlCommand:
    """Control body for the cloud relay."""

    command: str
    value: Any = None

    def to_payload(self) -> dict[str, Any]:
        return {"command": self.command, "value": self.value}


WireControlCommand = Union[LocalControlCommand, CloudControlCommand]


def to_wire(command: ControlCommand, mode: TransportMode) -> WireControlCommand:
    """Map a neutral command to the wire shape of ``mode``.

    Raises:
        UnsupportedError: For OFFLINE, which has no wire shape.
    """
    if mode is TransportMode.LOCAL:
        return LocalControlCommand(attribute=command.attribute, value=command.value)
    if mode is TransportMode.CLOUD:
        return CloudControlCommand(command=command.attribute, value=command.value)
    raise UnsupportedError(f"No control payload for mode {mode.value}")
