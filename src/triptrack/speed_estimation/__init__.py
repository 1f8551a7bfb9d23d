from .dwell import DwellConfig, DwellDetector, DwellState
from .estimator import SpeedEstimator, SpeedEstimatorConfig
from .smoothing import DisplaySmoother, EmaSmoother, PositionSmoother, SmoothingConfig
from .units import kmh_to_mps, mps_to_kmh

__all__ = [
    "DisplaySmoother",
    "DwellConfig",
    "DwellDetector",
    "DwellState",
    "EmaSmoother",
    "PositionSmoother",
    "SmoothingConfig",
    "SpeedEstimator",
    "SpeedEstimatorConfig",
    "kmh_to_mps",
    "mps_to_kmh",
]
