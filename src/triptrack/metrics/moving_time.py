from __future__ import annotations

from typing import Optional


class MovingTimeAccumulator:
    """Integrates time between consecutive moving fixes; stops and dwells add nothing."""

    def __init__(self) -> None:
        self._moving_time_s = 0.0
        self._is_moving = False
        self._last_t_s: Optional[float] = None

    @property
    def moving_time_s(self) -> float:
        return self._moving_time_s

    @property
    def is_moving(self) -> bool:
        return self._is_moving

    def update(self, moving: bool, t_s: float) -> float:
        if not moving:
            self._is_moving = False
            self._last_t_s = None
            return self._moving_time_s

        if not self._is_moving or self._last_t_s is None:
            self._is_moving = True
            self._last_t_s = float(t_s)
            return self._moving_time_s

        dt = float(t_s) - self._last_t_s
        if dt > 0.0:
            self._moving_time_s += dt
        self._last_t_s = float(t_s)
        return self._moving_time_s
