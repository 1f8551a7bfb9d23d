from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from triptrack.io.location_source import SubscriptionRequest
from triptrack.metrics.max_speed import MaxSpeedConfig
from triptrack.pipeline.buffer import BufferConfig
from triptrack.snapping.base import SnappingConfig
from triptrack.speed_estimation.dwell import DwellConfig
from triptrack.speed_estimation.estimator import SpeedEstimatorConfig
from triptrack.speed_estimation.smoothing import SmoothingConfig
from triptrack.utils.config import load_yaml, section


@dataclass(frozen=True)
class TrackingConfig:
    location: SubscriptionRequest
    speed: SpeedEstimatorConfig
    smoothing: SmoothingConfig
    dwell: DwellConfig
    max_speed: MaxSpeedConfig
    buffer: BufferConfig
    snapping: SnappingConfig

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "TrackingConfig":
        speed = SpeedEstimatorConfig.from_dict(section(d, "speed"))
        max_speed_raw = section(d, "max_speed")
        # the top-speed ceiling follows the estimator's unless set explicitly
        max_speed_raw.setdefault("max_speed_kmh", speed.max_speed_kmh)
        return TrackingConfig(
            location=SubscriptionRequest.from_dict(section(d, "location")),
            speed=speed,
            smoothing=SmoothingConfig.from_dict(section(d, "smoothing")),
            dwell=DwellConfig.from_dict(section(d, "dwell")),
            max_speed=MaxSpeedConfig.from_dict(max_speed_raw),
            buffer=BufferConfig.from_dict(section(d, "buffer")),
            snapping=SnappingConfig.from_dict(section(d, "snapping")),
        )

    @staticmethod
    def default() -> "TrackingConfig":
        return TrackingConfig.from_dict({})

    @staticmethod
    def from_yaml(path: str) -> "TrackingConfig":
        data = load_yaml(path)
        return TrackingConfig.from_dict(section(data, "tracking") if "tracking" in data else data)
