from __future__ import annotations

import csv
import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from triptrack.speed_estimation.math import haversine_m
from triptrack.utils.errors import LocationPermissionError
from triptrack.utils.types import RawFix


logger = logging.getLogger("triptrack.io.location")

FixCallback = Callable[[RawFix], None]


@dataclass(frozen=True)
class SubscriptionRequest:
    accuracy_tier: str = "best_for_navigation"
    min_interval_ms: int = 2000
    min_distance_m: float = 5.0

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SubscriptionRequest":
        return SubscriptionRequest(
            accuracy_tier=str(d.get("accuracy_tier", "best_for_navigation")),
            min_interval_ms=int(d.get("min_interval_ms", 2000)),
            min_distance_m=float(d.get("min_distance_m", 5.0)),
        )


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class LocationSource(Protocol):
    def subscribe(self, request: SubscriptionRequest, on_fix: FixCallback) -> Subscription:
        ...


class _ReplaySubscription:
    def __init__(self, request: SubscriptionRequest, on_fix: FixCallback) -> None:
        self.request = request
        self.on_fix = on_fix
        self._active = threading.Event()
        self._active.set()

    @property
    def active(self) -> bool:
        return self._active.is_set()

    def unsubscribe(self) -> None:
        self._active.clear()


class ReplayLocationSource(LocationSource):
    """
    Delivers recorded fixes to the current subscriber.

    Delivery happens in ``play()`` on the calling thread. A fix is passed on
    only once both the minimum interval and the minimum distance since the
    last delivered fix are reached, as a platform location service would.
    """

    def __init__(self, fixes: Iterable[RawFix], permission_granted: bool = True) -> None:
        self._fixes: List[RawFix] = list(fixes)
        self._permission_granted = bool(permission_granted)
        self._subscription: Optional[_ReplaySubscription] = None

    def subscribe(self, request: SubscriptionRequest, on_fix: FixCallback) -> Subscription:
        if not self._permission_granted:
            raise LocationPermissionError("Permission to access location was denied")
        if self._subscription is not None and self._subscription.active:
            self._subscription.unsubscribe()
        self._subscription = _ReplaySubscription(request, on_fix)
        return self._subscription

    def play(self, speedup: float = 0.0) -> int:
        sub = self._subscription
        if sub is None:
            raise RuntimeError("ReplayLocationSource.play() called without a subscriber")
        delivered = 0
        last: Optional[RawFix] = None
        for fix in self._fixes:
            if not sub.active:
                break
            if last is not None:
                dt_ms = (fix.timestamp_s - last.timestamp_s) * 1000.0
                dist = haversine_m(last.lat, last.lon, fix.lat, fix.lon)
                if dt_ms < sub.request.min_interval_ms or dist < sub.request.min_distance_m:
                    continue
                if speedup > 0.0:
                    time.sleep(max(0.0, fix.timestamp_s - last.timestamp_s) / speedup)
            sub.on_fix(fix)
            last = fix
            delivered += 1
        logger.info("replay delivered %d of %d fixes", delivered, len(self._fixes))
        return delivered


def read_fixes(path: str) -> List[RawFix]:
    p = Path(path)
    suffix = p.suffix.lower()
    with open(p, "r", encoding="utf-8", newline="") as f:
        if suffix == ".csv":
            rows: List[Dict[str, Any]] = list(csv.DictReader(f))
        elif suffix == ".jsonl":
            rows = [json.loads(line) for line in f if line.strip()]
        elif suffix == ".json":
            data = json.load(f)
            if not isinstance(data, list):
                raise ValueError(f"Expected a JSON list of fixes: {path}")
            rows = data
        else:
            raise ValueError(f"Unsupported fix file type: {suffix}")
    fixes: List[RawFix] = []
    for i, row in enumerate(rows):
        try:
            fixes.append(RawFix.from_dict(row))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid fix at row {i} of {path}: {e}") from e
    fixes.sort(key=lambda fx: fx.timestamp_s)
    return fixes
