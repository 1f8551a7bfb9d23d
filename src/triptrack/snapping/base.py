from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Sequence

from triptrack.utils.types import LatLon

ROADS_API_URL = "https://roads.googleapis.com/v1/snapToRoads"


@dataclass(frozen=True)
class SnappingConfig:
    api_key: str = ""
    api_key_env: str = "GOOGLE_MAPS_API_KEY"
    base_url: str = ROADS_API_URL
    interpolate: bool = True
    timeout_s: float = 10.0
    max_points_per_request: int = 100
    async_flush: bool = True
    final_flush_retries: int = 2

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SnappingConfig":
        cfg = SnappingConfig(
            api_key=str(d.get("api_key", "") or ""),
            api_key_env=str(d.get("api_key_env", "GOOGLE_MAPS_API_KEY") or ""),
            base_url=str(d.get("base_url", ROADS_API_URL)),
            interpolate=bool(d.get("interpolate", True)),
            timeout_s=float(d.get("timeout_s", 10.0)),
            max_points_per_request=int(d.get("max_points_per_request", 100)),
            async_flush=bool(d.get("async_flush", True)),
            final_flush_retries=int(d.get("final_flush_retries", 2)),
        )
        if cfg.max_points_per_request < 2:
            raise ValueError("snapping.max_points_per_request must be >= 2")
        if cfg.final_flush_retries < 0:
            raise ValueError("snapping.final_flush_retries must be >= 0")
        return cfg


class RoadSnapper(Protocol):
    def snap(self, points: Sequence[LatLon]) -> List[LatLon]:
        ...
