"""Trip statistics derived from official distance and moving time, plus display formatting."""

from __future__ import annotations

import math

from triptrack.speed_estimation.units import km_to_miles, kmh_to_mph


def average_speed_kmh(distance_km: float, moving_time_s: float) -> float:
    """Average speed over moving time; 0 when nothing has moved yet."""
    if not moving_time_s or moving_time_s <= 0.0:
        return 0.0
    v = float(distance_km) / (float(moving_time_s) / 3600.0)
    return v if math.isfinite(v) else 0.0


def format_duration(seconds: float) -> str:
    """``H:MM:SS`` when at least an hour, otherwise ``MM:SS``."""
    total = int(max(0.0, float(seconds)))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


def format_large_duration(seconds: float) -> str:
    """``2d 5h 30m`` style for long trips, ``5h 30m`` or ``12m`` below a day."""
    total = int(max(0.0, float(seconds)))
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_distance(distance_km: float, units: str = "km") -> str:
    u = str(units).lower()
    if u == "mi":
        return f"{km_to_miles(distance_km):.2f} mi"
    if u != "km":
        raise ValueError(f"Unknown distance units: {units}")
    return f"{float(distance_km):.2f} km"


def format_speed(speed_kmh: float, units: str = "kmh") -> str:
    u = str(units).lower()
    if u == "mph":
        return f"{round(kmh_to_mph(speed_kmh))} mph"
    if u != "kmh":
        raise ValueError(f"Unknown speed units: {units}")
    return f"{round(float(speed_kmh))} km/h"
