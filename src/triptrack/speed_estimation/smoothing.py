from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from triptrack.utils.types import LatLon


@dataclass(frozen=True)
class SmoothingConfig:
    position_alpha: float = 0.3
    position_max_gap_s: float = 0.0
    display_stop_decay: float = 0.3
    display_stop_snap_mps: float = 0.5
    display_low_speed_mps: float = 3.0
    display_low_alpha: float = 0.2
    display_high_alpha: float = 0.4

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SmoothingConfig":
        pos = d.get("position", {}) or {}
        disp = d.get("display", {}) or {}
        cfg = SmoothingConfig(
            position_alpha=float(pos.get("ema_alpha", 0.3)),
            position_max_gap_s=float(pos.get("max_gap_s", 0.0)),
            display_stop_decay=float(disp.get("stop_decay", 0.3)),
            display_stop_snap_mps=float(disp.get("stop_snap_mps", 0.5)),
            display_low_speed_mps=float(disp.get("low_speed_mps", 3.0)),
            display_low_alpha=float(disp.get("low_alpha", 0.2)),
            display_high_alpha=float(disp.get("high_alpha", 0.4)),
        )
        for name in ("position_alpha", "display_stop_decay", "display_low_alpha", "display_high_alpha"):
            v = getattr(cfg, name)
            if not 0.0 < v <= 1.0:
                raise ValueError(f"smoothing.{name} must be in (0, 1], got {v}")
        return cfg


@dataclass
class EmaSmoother:
    """
    Exponential moving average of one scalar series.

    The first update seeds the value unchanged. With ``max_gap_s > 0`` a gap
    longer than that (or a timestamp going backwards) re-seeds from the new value.
    """
    alpha: float
    max_gap_s: float = 0.0
    _value: Optional[float] = None
    _t_last_s: Optional[float] = None

    @property
    def value(self) -> Optional[float]:
        return self._value

    def update(self, value: float, t_s: float) -> float:
        if self._value is None or self._t_last_s is None:
            return self._seed(value, t_s)
        dt = float(t_s - self._t_last_s)
        if self.max_gap_s > 0.0 and (dt < 0.0 or dt > self.max_gap_s):
            return self._seed(value, t_s)
        self._value = float(self._value) + float(self.alpha) * (float(value) - float(self._value))
        self._t_last_s = float(t_s)
        return float(self._value)

    def _seed(self, value: float, t_s: float) -> float:
        self._value = float(value)
        self._t_last_s = float(t_s)
        return float(self._value)


class PositionSmoother:
    """Smooths lat and lon independently; downstream math only sees this trajectory."""

    def __init__(self, alpha: float, max_gap_s: float = 0.0) -> None:
        self._lat = EmaSmoother(alpha=alpha, max_gap_s=max_gap_s)
        self._lon = EmaSmoother(alpha=alpha, max_gap_s=max_gap_s)

    @property
    def position(self) -> Optional[LatLon]:
        if self._lat.value is None or self._lon.value is None:
            return None
        return LatLon(self._lat.value, self._lon.value)

    def update(self, lat: float, lon: float, t_s: float) -> LatLon:
        return LatLon(self._lat.update(lat, t_s), self._lon.update(lon, t_s))


class DisplaySmoother:
    """
    Asymmetric smoothing of the speed shown to the user.

    Stops settle fast: a zero reading decays the shown value geometrically and
    snaps it to 0 under ``stop_snap_mps``. Non-zero readings are blended in
    with a gentler factor at low speed, where relative GPS error is larger.
    """

    def __init__(self, cfg: SmoothingConfig) -> None:
        self._cfg = cfg
        self._value = 0.0

    @property
    def value(self) -> float:
        return self._value

    def update(self, filtered_mps: float) -> float:
        cfg = self._cfg
        v = float(filtered_mps)
        if v <= 0.0:
            if self._value > 0.0:
                decayed = self._value * cfg.display_stop_decay
                self._value = 0.0 if decayed < cfg.display_stop_snap_mps else decayed
            return self._value
        alpha = cfg.display_low_alpha if v < cfg.display_low_speed_mps else cfg.display_high_alpha
        self._value = self._value + alpha * (v - self._value)
        return self._value
