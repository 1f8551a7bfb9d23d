from __future__ import annotations

import logging

from triptrack.snapping.base import RoadSnapper, SnappingConfig
from triptrack.snapping.google_roads import GoogleRoadsSnapper
from triptrack.snapping.passthrough import PassthroughSnapper
from triptrack.utils.config import env_str


logger = logging.getLogger("triptrack.snapping.registry")


def resolve_api_key(cfg: SnappingConfig) -> str:
    if cfg.api_key.strip():
        return cfg.api_key.strip()
    if cfg.api_key_env:
        return env_str(cfg.api_key_env)
    return ""


def create_snapper(cfg: SnappingConfig) -> RoadSnapper:
    api_key = resolve_api_key(cfg)
    if not api_key:
        logger.warning("No road-snapping credential configured; official distance will use raw smoothed points")
        return PassthroughSnapper()
    return GoogleRoadsSnapper(
        api_key=api_key,
        base_url=cfg.base_url,
        interpolate=cfg.interpolate,
        timeout_s=cfg.timeout_s,
        max_points_per_request=cfg.max_points_per_request,
    )
