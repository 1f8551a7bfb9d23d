from __future__ import annotations

from typing import List, Sequence, Tuple

from triptrack.speed_estimation.math import path_length_km
from triptrack.utils.types import LatLon


class DistanceAccumulator:
    """Official trip distance and the path it was measured on.

    Both only grow; a segment is accepted whole or not at all.
    """

    def __init__(self) -> None:
        self._distance_km = 0.0
        self._path: List[LatLon] = []

    @property
    def distance_km(self) -> float:
        return self._distance_km

    @property
    def path(self) -> Tuple[LatLon, ...]:
        return tuple(self._path)

    def add_segment(self, points: Sequence[LatLon]) -> float:
        added = path_length_km(points)
        self._path.extend(points)
        self._distance_km += added
        return added
