"""Error types raised by the tracking engine and its collaborators."""

from __future__ import annotations


class TrackingError(RuntimeError):
    """Base error for tracking failures."""


class LocationPermissionError(TrackingError):
    """Raised when the location source refuses access.

    Terminal for the session: no further fixes will arrive.
    """


class SnapError(TrackingError):
    """Raised when the road-snapping service fails (network, HTTP or parse error).

    Transient by contract; callers keep their points and retry later.
    """


__all__ = [
    "LocationPermissionError",
    "SnapError",
    "TrackingError",
]
