from .config import env_str, load_yaml, resolve_path, section
from .errors import LocationPermissionError, SnapError, TrackingError
from .logging import setup_logging
from .types import FixSample, LatLon, RawFix, TrackedPoint, TrackingSnapshot, TripSummary

__all__ = [
    "FixSample",
    "LatLon",
    "LocationPermissionError",
    "RawFix",
    "SnapError",
    "TrackedPoint",
    "TrackingError",
    "TrackingSnapshot",
    "TripSummary",
    "env_str",
    "load_yaml",
    "resolve_path",
    "section",
    "setup_logging",
]
