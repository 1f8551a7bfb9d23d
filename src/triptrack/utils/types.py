from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class LatLon:
    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (float(self.lat), float(self.lon))


@dataclass(frozen=True)
class RawFix:
    lat: float
    lon: float
    device_speed_mps: float
    heading_deg: float
    accuracy_m: float
    timestamp_s: float

    @property
    def position(self) -> LatLon:
        return LatLon(self.lat, self.lon)

    @staticmethod
    def from_dict(d: Mapping[str, Any]) -> "RawFix":
        # Platforms report missing speed/heading as null or a negative sentinel.
        speed = d.get("speed_mps", d.get("speed"))
        heading = d.get("heading_deg", d.get("heading"))
        accuracy = d.get("accuracy_m", d.get("accuracy"))
        if "timestamp_s" in d:
            t_s = float(d["timestamp_s"])
        elif "timestamp_ms" in d:
            t_s = float(d["timestamp_ms"]) / 1000.0
        else:
            t_s = float(d["timestamp"])
        return RawFix(
            lat=float(d.get("lat", d.get("latitude"))),
            lon=float(d.get("lon", d.get("longitude"))),
            device_speed_mps=max(0.0, float(speed)) if speed not in (None, "") else 0.0,
            heading_deg=max(0.0, float(heading)) if heading not in (None, "") else 0.0,
            accuracy_m=float(accuracy) if accuracy not in (None, "") else 0.0,
            timestamp_s=t_s,
        )


@dataclass(frozen=True)
class TrackedPoint:
    lat: float
    lon: float
    speed_mps: float
    heading_deg: float
    timestamp_s: float
    accuracy_m: float

    @property
    def position(self) -> LatLon:
        return LatLon(self.lat, self.lon)


@dataclass(frozen=True)
class FixSample:
    timestamp_s: float
    lat: float
    lon: float
    smoothed_lat: float
    smoothed_lon: float
    accuracy_m: float
    speed_mps_raw: float
    speed_mps_filtered: float
    speed_mps_display: float
    is_dwelling: bool
    is_moving: bool


@dataclass(frozen=True)
class TrackingSnapshot:
    tracking: bool
    live_raw_location: Optional[RawFix]
    official_snapped_path: Tuple[LatLon, ...]
    official_distance_km: float
    moving_time_s: float
    max_speed_kmh: float
    avg_speed_kmh: float
    display_speed_kmh: float
    is_dwelling: bool
    is_moving: bool
    pending_points: int


@dataclass(frozen=True)
class TripSummary:
    started_at_s: Optional[float]
    ended_at_s: Optional[float]
    distance_km: float
    moving_time_s: float
    max_speed_kmh: float
    avg_speed_kmh: float
    path: Tuple[LatLon, ...]
    unsnapped_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at_s": self.started_at_s,
            "ended_at_s": self.ended_at_s,
            "distance_km": self.distance_km,
            "moving_time_s": self.moving_time_s,
            "max_speed_kmh": self.max_speed_kmh,
            "avg_speed_kmh": self.avg_speed_kmh,
            "path": [[p.lat, p.lon] for p in self.path],
            "unsnapped_points": self.unsnapped_points,
        }


def as_np_latlon(points: Sequence[LatLon]) -> np.ndarray:
    return np.asarray([p.as_tuple() for p in points], dtype=np.float64).reshape(-1, 2)


def to_latlon(points: Sequence[TrackedPoint]) -> List[LatLon]:
    return [p.position for p in points]
