from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from triptrack.snapping.base import RoadSnapper
from triptrack.utils.types import LatLon


@dataclass
class PassthroughSnapper(RoadSnapper):
    """Accepts the smoothed points as the official path. Used when no road service is configured."""

    def snap(self, points: Sequence[LatLon]) -> List[LatLon]:
        return list(points)
