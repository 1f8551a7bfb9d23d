from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Tuple

import numpy as np


logger = logging.getLogger("triptrack.metrics.max_speed")


@dataclass(frozen=True)
class MaxSpeedConfig:
    history_size: int = 5
    near_max_ratio: float = 0.9
    high_speed_kmh: float = 50.0
    agreement_ratio: float = 0.85
    min_corroborating: int = 2
    reset_ratio: float = 0.5
    max_speed_kmh: float = 250.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MaxSpeedConfig":
        cfg = MaxSpeedConfig(
            history_size=int(d.get("history_size", 5)),
            near_max_ratio=float(d.get("near_max_ratio", 0.9)),
            high_speed_kmh=float(d.get("high_speed_kmh", 50.0)),
            agreement_ratio=float(d.get("agreement_ratio", 0.85)),
            min_corroborating=int(d.get("min_corroborating", 2)),
            reset_ratio=float(d.get("reset_ratio", 0.5)),
            max_speed_kmh=float(d.get("max_speed_kmh", 250.0)),
        )
        if cfg.history_size < cfg.min_corroborating:
            raise ValueError("max_speed.history_size must be >= max_speed.min_corroborating")
        if cfg.min_corroborating < 1:
            raise ValueError("max_speed.min_corroborating must be >= 1")
        return cfg


class MaxSpeedTracker:
    """
    Top speed that only moves on corroborated evidence.

    Readings near the current record (or simply fast) are kept in a short
    history. A new record needs ``min_corroborating`` of those readings,
    the candidate included, to agree with the candidate within
    ``agreement_ratio``; the record becomes their median, never the spike.
    """

    def __init__(self, cfg: MaxSpeedConfig) -> None:
        self._cfg = cfg
        self._max_kmh = 0.0
        self._high: Deque[float] = deque(maxlen=max(1, int(cfg.history_size)))

    @property
    def max_speed_kmh(self) -> float:
        return self._max_kmh

    @property
    def high_samples(self) -> Tuple[float, ...]:
        return tuple(self._high)

    def update(self, speed_kmh: float) -> float:
        cfg = self._cfg
        v = float(speed_kmh)
        if v <= 0.0 or v > cfg.max_speed_kmh:
            return self._max_kmh

        if self._max_kmh > 0.0 and v < self._max_kmh * cfg.reset_ratio:
            self._high.clear()
            return self._max_kmh

        if v >= self._max_kmh * cfg.near_max_ratio or v > cfg.high_speed_kmh:
            self._high.append(v)

        if v > self._max_kmh:
            agreeing = self._agreeing(v)
            if len(agreeing) >= cfg.min_corroborating:
                candidate = float(np.median(agreeing))
                if candidate > self._max_kmh:
                    logger.debug("max speed %.1f -> %.1f km/h from %s", self._max_kmh, candidate, agreeing)
                    self._max_kmh = candidate
        return self._max_kmh

    def _agreeing(self, candidate_kmh: float) -> List[float]:
        ratio = self._cfg.agreement_ratio
        out: List[float] = []
        for s in self._high:
            lo, hi = min(s, candidate_kmh), max(s, candidate_kmh)
            if hi > 0.0 and lo / hi >= ratio:
                out.append(s)
        return out
