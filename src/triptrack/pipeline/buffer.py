from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from triptrack.utils.types import TrackedPoint


@dataclass(frozen=True)
class BufferConfig:
    max_points: int = 10
    flush_interval_s: float = 30.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "BufferConfig":
        cfg = BufferConfig(
            max_points=int(d.get("max_points", 10)),
            flush_interval_s=float(d.get("flush_interval_s", 30.0)),
        )
        if cfg.max_points < 2:
            raise ValueError("buffer.max_points must be >= 2")
        if cfg.flush_interval_s <= 0.0:
            raise ValueError("buffer.flush_interval_s must be > 0")
        return cfg


class SampleBuffer:
    """
    Confirmed-movement points waiting to be reconciled into the official path.

    Points leave the buffer only through ``consume`` after a successful
    exchange. A regular flush keeps the newest sent point as the seed of the
    next segment so consecutive segments join up.
    """

    def __init__(self, cfg: BufferConfig) -> None:
        self._cfg = cfg
        self._points: List[TrackedPoint] = []
        self._last_flush_s: Optional[float] = None

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> Tuple[TrackedPoint, ...]:
        return tuple(self._points)

    @property
    def last_flush_s(self) -> Optional[float]:
        return self._last_flush_s

    def start_clock(self, now_s: float) -> None:
        """The flush interval runs from the start of the session, not the first buffered point."""
        if self._last_flush_s is None:
            self._last_flush_s = float(now_s)

    def append(self, p: TrackedPoint) -> None:
        self._points.append(p)

    def due(self, now_s: float) -> bool:
        if len(self._points) >= self._cfg.max_points:
            return True
        if not self._points:
            return False
        ref = self._last_flush_s if self._last_flush_s is not None else self._points[0].timestamp_s
        return float(now_s) - ref > self._cfg.flush_interval_s

    def begin_flush(self, now_s: float) -> Optional[List[TrackedPoint]]:
        # a lone point is already the seed of the previous segment
        if len(self._points) < 2:
            return None
        self._last_flush_s = float(now_s)
        return list(self._points)

    def consume(self, sent_count: int, keep_seed: bool = True) -> None:
        n = max(0, min(int(sent_count), len(self._points)))
        if keep_seed and n > 0:
            n -= 1
        del self._points[:n]

    def clear(self) -> None:
        self._points.clear()
