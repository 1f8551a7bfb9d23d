from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from triptrack.utils.types import LatLon, as_np_latlon

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = math.sin(d_lat / 2.0) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2.0) ** 2
    a = min(1.0, max(0.0, a))
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return float(EARTH_RADIUS_KM * c)


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return haversine_km(lat1, lon1, lat2, lon2) * 1000.0


def path_length_km(points: Sequence[LatLon]) -> float:
    """Sum of great-circle distances between consecutive points."""
    if len(points) < 2:
        return 0.0
    arr = np.radians(as_np_latlon(points))
    lat0, lon0 = arr[:-1, 0], arr[:-1, 1]
    lat1, lon1 = arr[1:, 0], arr[1:, 1]
    a = np.sin((lat1 - lat0) / 2.0) ** 2 + np.cos(lat0) * np.cos(lat1) * np.sin((lon1 - lon0) / 2.0) ** 2
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(np.clip(1.0 - a, 0.0, None)))
    total = float(np.sum(EARTH_RADIUS_KM * c))
    if not math.isfinite(total) or total < 0.0:
        return 0.0
    return total


def speed_mps(distance_m: float, dt_s: float) -> Optional[float]:
    dt = float(dt_s)
    if dt <= 0.0:
        return None
    v = float(distance_m) / dt
    if not math.isfinite(v):
        return None
    return v
