"""Exception hierarchy for celestial_globe.

Layout and collapse resolution never raise for well-typed input; everything
here belongs to the network boundary (client + store) or to payload decoding.
"""

from __future__ import annotations


class CelestialGlobeError(Exception):
    """Base class for all package errors."""


class TopologyClientError(CelestialGlobeError):
    """A backend request did not complete successfully."""


class TopologyAPIError(TopologyClientError):
    """The backend answered with a non-2xx status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class TopologyTransportError(TopologyClientError):
    """The request never produced an HTTP response (connect error, timeout, ...)."""


class SnapshotDecodeError(CelestialGlobeError):
    """A topology payload could not be decoded into a snapshot."""


class ValidationFailure(CelestialGlobeError):
    """A mutation was rejected locally before any request was sent."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
