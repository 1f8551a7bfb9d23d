from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional


logger = logging.getLogger("triptrack.speed_estimation.dwell")


@dataclass(frozen=True)
class DwellConfig:
    stationary_threshold_mps: float = 1.5
    dwell_s: float = 5.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "DwellConfig":
        cfg = DwellConfig(
            stationary_threshold_mps=float(d.get("stationary_threshold_mps", 1.5)),
            dwell_s=float(d.get("dwell_s", 5.0)),
        )
        if cfg.stationary_threshold_mps <= 0.0:
            raise ValueError("dwell.stationary_threshold_mps must be > 0")
        if cfg.dwell_s < 0.0:
            raise ValueError("dwell.dwell_s must be >= 0")
        return cfg


class DwellState(enum.Enum):
    MOVING = "moving"
    DWELLING = "dwelling"


class DwellDetector:
    """
    Tells a real stop (traffic light, photo stop) apart from a single slow reading.

    A run of sub-threshold readings starts a timer; once it has lasted
    ``dwell_s`` the detector is DWELLING. Any reading at or above the
    threshold clears the timer and returns to MOVING immediately.
    """

    def __init__(self, cfg: DwellConfig) -> None:
        self._cfg = cfg
        self._state = DwellState.MOVING
        self._stationary_since_s: Optional[float] = None

    @property
    def state(self) -> DwellState:
        return self._state

    @property
    def is_dwelling(self) -> bool:
        return self._state is DwellState.DWELLING

    def update(self, speed_mps: float, t_s: float) -> bool:
        if float(speed_mps) >= self._cfg.stationary_threshold_mps:
            if self._state is DwellState.DWELLING:
                logger.debug("dwell ended at t=%.3f", t_s)
            self._stationary_since_s = None
            self._state = DwellState.MOVING
            return False

        if self._stationary_since_s is None:
            self._stationary_since_s = float(t_s)
        if self._state is DwellState.MOVING and float(t_s) - self._stationary_since_s >= self._cfg.dwell_s:
            self._state = DwellState.DWELLING
            logger.debug("dwell started at t=%.3f (stationary since %.3f)", t_s, self._stationary_since_s)
        return self.is_dwelling
