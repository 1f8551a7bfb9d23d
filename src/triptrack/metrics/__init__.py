from .distance import DistanceAccumulator
from .max_speed import MaxSpeedConfig, MaxSpeedTracker
from .moving_time import MovingTimeAccumulator
from .stats import average_speed_kmh, format_distance, format_duration, format_large_duration, format_speed

__all__ = [
    "DistanceAccumulator",
    "MaxSpeedConfig",
    "MaxSpeedTracker",
    "MovingTimeAccumulator",
    "average_speed_kmh",
    "format_distance",
    "format_duration",
    "format_large_duration",
    "format_speed",
]
