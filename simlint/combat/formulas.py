"""Damage and cadence math decoupled from blueprint parsing."""
from __future__ import annotations

from math import isfinite
from typing import Optional

MIN_RATE_OF_FIRE = 0.001
MISMATCH_TOLERANCE = 0.01
RATIO_WARN_LOW = 0.80
RATIO_WARN_HIGH = 1.25


def _finite(value: float) -> float:
    return value if isfinite(value) else 0.0


def clamp_rate_of_fire(rate_of_fire: float) -> float:
    if not isfinite(rate_of_fire):
        return MIN_RATE_OF_FIRE
    return max(rate_of_fire, MIN_RATE_OF_FIRE)


def whole_count(value: Optional[float]) -> Optional[int]:
    """Truncate a blueprint count to a non-negative int; non-finite counts are dropped."""

    if value is None or not isfinite(value):
        return None
    return max(0, int(value))


def total_damage_per_shot(
    damage: float,
    initial_damage: Optional[float] = None,
    fragment_count: Optional[int] = None,
    fragment_damage: Optional[float] = None,
) -> float:
    fragments = (fragment_count or 0) * (fragment_damage or 0.0)
    return _finite(damage + (initial_damage or 0.0) + fragments)


def nominal_dps(damage: float, projectiles: int, rate_of_fire: float) -> float:
    if rate_of_fire <= 0.0:
        return 0.0
    return _finite(damage * projectiles * rate_of_fire)


def cycle_time_sec(rate_of_fire: float, reload_time: Optional[float] = None) -> float:
    if reload_time is not None and reload_time > 0.0:
        return _finite(reload_time)
    if rate_of_fire > 0.0:
        return _finite(1.0 / rate_of_fire)
    return 0.0


def salvo_duration_sec(salvo_size: Optional[int], salvo_delay: Optional[float]) -> float:
    if salvo_size is None or salvo_delay is None:
        return 0.0
    if salvo_size <= 0 or salvo_delay < 0.0:
        return 0.0
    return _finite(salvo_size * salvo_delay)


def shots_per_cycle(salvo_size: Optional[int]) -> int:
    if salvo_size is not None and salvo_size > 0:
        return salvo_size
    return 1


def effective_dps(
    damage: float,
    projectiles: int,
    rate_of_fire: float,
    reload_time: Optional[float] = None,
    salvo_size: Optional[int] = None,
    salvo_delay: Optional[float] = None,
) -> float:
    """Damage over one full fire, salvo and reload cycle."""

    total_cycle = cycle_time_sec(rate_of_fire, reload_time) + salvo_duration_sec(salvo_size, salvo_delay)
    if total_cycle <= 0.0:
        return 0.0
    damage_per_cycle = damage * projectiles * shots_per_cycle(salvo_size)
    return _finite(damage_per_cycle / total_cycle)


def dps_ratio(declared: float, effective: float) -> float:
    if declared <= 0.0:
        return 0.0
    return _finite(effective / declared)


def is_dps_mismatch(declared: float, effective: float) -> bool:
    return abs(declared - effective) > MISMATCH_TOLERANCE * max(declared, 1.0)


def ratio_out_of_band(ratio: float) -> bool:
    return not RATIO_WARN_LOW <= ratio <= RATIO_WARN_HIGH


__all__ = [
    "MIN_RATE_OF_FIRE",
    "clamp_rate_of_fire",
    "total_damage_per_shot",
    "nominal_dps",
    "cycle_time_sec",
    "salvo_duration_sec",
    "shots_per_cycle",
    "effective_dps",
    "dps_ratio",
    "is_dps_mismatch",
    "ratio_out_of_band",
    "whole_count",
]
