from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Optional, Tuple

from triptrack.speed_estimation.limits import plausible_speed_mps
from triptrack.speed_estimation.math import haversine_m, speed_mps
from triptrack.speed_estimation.units import mps_to_kmh
from triptrack.utils.types import LatLon


logger = logging.getLogger("triptrack.speed_estimation.estimator")

WindowSample = Tuple[float, float, float]


@dataclass(frozen=True)
class SpeedEstimatorConfig:
    max_accuracy_m: float
    window_s: float
    min_elapsed_s: float
    min_displacement_m: float
    drift_displacement_m: float
    drift_elapsed_s: float
    max_speed_kmh: float
    device_fallback_enabled: bool
    device_fallback_max_accuracy_m: float

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SpeedEstimatorConfig":
        filt = d.get("filter", {}) or {}
        raw = d.get("raw_speed", {}) or {}
        fallback = d.get("device_fallback", {}) or {}
        cfg = SpeedEstimatorConfig(
            max_accuracy_m=float(filt.get("max_accuracy_m", 30.0)),
            window_s=float(raw.get("window_s", 5.0)),
            min_elapsed_s=float(raw.get("min_elapsed_s", 2.0)),
            min_displacement_m=float(raw.get("min_displacement_m", 3.0)),
            drift_displacement_m=float(raw.get("drift_displacement_m", 5.0)),
            drift_elapsed_s=float(raw.get("drift_elapsed_s", 5.0)),
            max_speed_kmh=float(raw.get("max_speed_kmh", 250.0)),
            device_fallback_enabled=bool(fallback.get("enabled", True)),
            device_fallback_max_accuracy_m=float(fallback.get("max_accuracy_m", 15.0)),
        )
        if cfg.window_s <= 0.0:
            raise ValueError("raw_speed.window_s must be > 0")
        if cfg.max_accuracy_m <= 0.0:
            raise ValueError("filter.max_accuracy_m must be > 0")
        if cfg.max_speed_kmh <= 0.0:
            raise ValueError("raw_speed.max_speed_kmh must be > 0")
        return cfg


class SpeedEstimator:
    """
    Speed from a short time window of smoothed positions.

    Over a window of a few seconds the displacement between the oldest and
    newest sample is compared against the elapsed time. Short or tiny
    displacements are treated as positional noise and read as 0; the
    device-reported speed is used only when the window says 0 and the fix is
    very accurate.
    """

    def __init__(self, cfg: SpeedEstimatorConfig) -> None:
        self._cfg = cfg
        self._window: Deque[WindowSample] = deque()

    @property
    def window(self) -> Tuple[WindowSample, ...]:
        return tuple(self._window)

    def update(self, pos: LatLon, t_s: float, accuracy_m: float, device_speed_mps: float) -> float:
        t = float(t_s)
        if self._window and t < self._window[-1][2]:
            logger.debug("timestamp went backwards (%.3f < %.3f); restarting speed window", t, self._window[-1][2])
            self._window.clear()
        self._window.append((float(pos.lat), float(pos.lon), t))
        self._prune(t)

        v = self._window_speed_mps()
        if v == 0.0:
            v = self._device_fallback_mps(accuracy_m, device_speed_mps)
        return v

    def _prune(self, now_s: float) -> None:
        cutoff = now_s - self._cfg.window_s
        while self._window and self._window[0][2] < cutoff:
            self._window.popleft()

    def _window_speed_mps(self) -> float:
        if len(self._window) < 2:
            return 0.0
        lat0, lon0, t0 = self._window[0]
        lat1, lon1, t1 = self._window[-1]
        elapsed = float(t1 - t0)
        distance = haversine_m(lat0, lon0, lat1, lon1)

        if elapsed < self._cfg.min_elapsed_s or distance < self._cfg.min_displacement_m:
            return 0.0
        if distance < self._cfg.drift_displacement_m and elapsed > self._cfg.drift_elapsed_s:
            return 0.0
        v = speed_mps(distance, elapsed)
        if v is None:
            return 0.0
        checked = plausible_speed_mps(v, self._cfg.max_speed_kmh)
        if checked == 0.0 and v > 0.0:
            logger.debug("rejected implausible window speed %.1f km/h (%.1f m over %.2f s)", mps_to_kmh(v), distance, elapsed)
        return checked

    def _device_fallback_mps(self, accuracy_m: float, device_speed_mps: Optional[float]) -> float:
        if not self._cfg.device_fallback_enabled or device_speed_mps is None:
            return 0.0
        if float(accuracy_m) >= self._cfg.device_fallback_max_accuracy_m or float(device_speed_mps) <= 0.0:
            return 0.0
        return plausible_speed_mps(device_speed_mps, self._cfg.max_speed_kmh)
