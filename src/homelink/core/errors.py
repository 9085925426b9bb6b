"""Error taxonomy surfaced by the HomeLink client.

Reachability probes and the event channel absorb their own failures.
Everything listed here reaches callers so the UI can tell "pair your
gateway" apart from "check your connection".
"""

from __future__ import annotations

from typing import Any


class HomeLinkError(Exception):
    """Base exception for HomeLink client errors."""


class NotConfiguredError(HomeLinkError):
    """No local server address has been configured."""


class NotPairedError(HomeLinkError):
    """No cloud gateway identity could be resolved."""


class UnsupportedError(HomeLinkError):
    """Operation is not available on the current transport."""


class UnreachableError(HomeLinkError):
    """No transport is reachable, or the request never got an answer."""


class UpstreamError(HomeLinkError):
    """The backend answered with an error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthenticationError(UpstreamError):
    """Credentials are missing, invalid or expired."""


class MalformedMessageError(HomeLinkError):
    """An event channel payload could not be parsed."""
