from __future__ import annotations

import math

from triptrack.speed_estimation.units import mps_to_kmh


def accuracy_accepted(accuracy_m: float, max_accuracy_m: float) -> bool:
    a = float(accuracy_m)
    if not math.isfinite(a):
        return False
    return a <= float(max_accuracy_m)


def plausible_speed_mps(v_mps: float, max_speed_kmh: float) -> float:
    v = float(v_mps)
    if not math.isfinite(v) or v < 0.0:
        return 0.0
    if mps_to_kmh(v) > float(max_speed_kmh):
        return 0.0
    return v


def drift_filtered_speed_mps(v_mps: float, stationary_threshold_mps: float) -> float:
    v = float(v_mps)
    if v < float(stationary_threshold_mps):
        return 0.0
    return v
