from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from triptrack.metrics.distance import DistanceAccumulator
from triptrack.metrics.max_speed import MaxSpeedTracker
from triptrack.metrics.moving_time import MovingTimeAccumulator
from triptrack.pipeline.buffer import SampleBuffer
from triptrack.pipeline.config import TrackingConfig
from triptrack.speed_estimation.dwell import DwellDetector
from triptrack.speed_estimation.estimator import SpeedEstimator
from triptrack.speed_estimation.smoothing import DisplaySmoother, PositionSmoother
from triptrack.utils.types import RawFix


@dataclass
class SessionState:
    """Every piece of per-trip mutable state, owned by one engine.

    Resetting a session means replacing this object; nothing survives.
    """
    generation: int
    position: PositionSmoother
    estimator: SpeedEstimator
    dwell: DwellDetector
    display: DisplaySmoother
    max_speed: MaxSpeedTracker
    moving_time: MovingTimeAccumulator
    buffer: SampleBuffer
    distance: DistanceAccumulator
    live_raw_location: Optional[RawFix] = None
    started_at_s: Optional[float] = None
    last_fix_s: Optional[float] = None
    flush_in_flight: bool = False

    @staticmethod
    def fresh(cfg: TrackingConfig, generation: int) -> "SessionState":
        return SessionState(
            generation=int(generation),
            position=PositionSmoother(alpha=cfg.smoothing.position_alpha, max_gap_s=cfg.smoothing.position_max_gap_s),
            estimator=SpeedEstimator(cfg.speed),
            dwell=DwellDetector(cfg.dwell),
            display=DisplaySmoother(cfg.smoothing),
            max_speed=MaxSpeedTracker(cfg.max_speed),
            moving_time=MovingTimeAccumulator(),
            buffer=SampleBuffer(cfg.buffer),
            distance=DistanceAccumulator(),
        )
