from __future__ import annotations

KM_PER_MILE = 1.609344


def mps_to_kmh(v_mps: float) -> float:
    return float(v_mps) * 3.6


def kmh_to_mps(v_kmh: float) -> float:
    return float(v_kmh) / 3.6


def kmh_to_mph(v_kmh: float) -> float:
    return float(v_kmh) / KM_PER_MILE


def km_to_miles(d_km: float) -> float:
    return float(d_km) / KM_PER_MILE
