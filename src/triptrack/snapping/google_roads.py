from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

from triptrack.snapping.base import ROADS_API_URL, RoadSnapper
from triptrack.utils.errors import SnapError
from triptrack.utils.types import LatLon


logger = logging.getLogger("triptrack.snapping.google_roads")


def _chunks(points: Sequence[LatLon], size: int) -> List[Sequence[LatLon]]:
    # consecutive chunks share one point so the snapped path stays connected
    if len(points) <= size:
        return [points]
    out: List[Sequence[LatLon]] = []
    start = 0
    while start < len(points) - 1:
        out.append(points[start : start + size])
        start += size - 1
    return out


def parse_snapped_points(payload: Dict[str, Any]) -> List[LatLon]:
    if not isinstance(payload, dict):
        raise SnapError("Roads API response is not a JSON object")
    if "error" in payload:
        err = payload.get("error") or {}
        raise SnapError(f"Roads API error {err.get('code')}: {err.get('message')}")
    out: List[LatLon] = []
    for item in payload.get("snappedPoints", []) or []:
        try:
            loc = item["location"]
            out.append(LatLon(float(loc["latitude"]), float(loc["longitude"])))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapError(f"Malformed snapped point: {item!r}") from e
    return out


@dataclass
class GoogleRoadsSnapper(RoadSnapper):
    api_key: str
    base_url: str = ROADS_API_URL
    interpolate: bool = True
    timeout_s: float = 10.0
    max_points_per_request: int = 100

    def snap(self, points: Sequence[LatLon]) -> List[LatLon]:
        if len(points) < 2:
            return list(points)
        snapped: List[LatLon] = []
        for chunk in _chunks(points, max(2, int(self.max_points_per_request))):
            result = self._request(chunk)
            if not result:
                logger.warning("Roads API returned no points for %d-point segment; keeping raw points", len(chunk))
                result = list(chunk)
            snapped.extend(result)
        return snapped

    def _request(self, points: Sequence[LatLon]) -> List[LatLon]:
        path = "|".join(f"{p.lat:.7f},{p.lon:.7f}" for p in points)
        query = urllib.parse.urlencode(
            {"path": path, "interpolate": "true" if self.interpolate else "false", "key": self.api_key},
            safe="|,",
        )
        req = urllib.request.Request(f"{self.base_url}?{query}", method="GET")
        req.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=float(self.timeout_s)) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            raise SnapError(f"Roads API HTTP {e.code} for {len(points)} points") from e
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
            raise SnapError(f"Roads API request failed: {e!r}") from e
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SnapError("Roads API returned invalid JSON") from e
        return parse_snapped_points(payload)
