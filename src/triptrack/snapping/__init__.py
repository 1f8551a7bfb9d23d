from .base import RoadSnapper, SnappingConfig
from .google_roads import GoogleRoadsSnapper
from .passthrough import PassthroughSnapper
from .registry import create_snapper

__all__ = ["GoogleRoadsSnapper", "PassthroughSnapper", "RoadSnapper", "SnappingConfig", "create_snapper"]
