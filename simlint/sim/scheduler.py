"""Discrete-event fire scheduler for multi-weapon units.

Each weapon fires on its own cadence starting at t=0. When several are
ready at the same moment the one declared first fires first, so event
order (and every count derived from it) is deterministic.
"""
from __future__ import annotations

from dataclasses import dataclass
from math import floor, inf
from typing import Dict, List, Optional, Sequence, Tuple

from simlint.combat.weapons import WeaponDeclared, WeaponEffective
from simlint.engine.config import MAX_SCHEDULE_EVENTS, SCHEDULE_TIME_EPS
from simlint.engine.logger import ChannelLogger


@dataclass(frozen=True)
class FireEvent:
    time_sec: float
    weapon_id: str
    shot_index: int


@dataclass(frozen=True)
class Gap:
    start_sec: float
    end_sec: float
    duration_sec: float
    weapons_around: Tuple[str, str]


@dataclass(frozen=True)
class WeaponShotCount:
    weapon_id: str
    expected: int
    actual: int


@dataclass(frozen=True)
class ScheduleResult:
    events: Tuple[FireEvent, ...]
    window_sec: float
    shot_counts: Tuple[WeaponShotCount, ...]
    gaps: Tuple[Gap, ...]
    truncated: bool = False

    @property
    def expected_total(self) -> int:
        return sum(count.expected for count in self.shot_counts)

    @property
    def actual_total(self) -> int:
        return sum(count.actual for count in self.shot_counts)

    def expected_by_weapon(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for count in self.shot_counts:
            totals[count.weapon_id] = totals.get(count.weapon_id, 0) + count.expected
        return totals

    def actual_by_weapon(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for count in self.shot_counts:
            totals[count.weapon_id] = totals.get(count.weapon_id, 0) + count.actual
        return totals


def expected_shots(window_sec: float, effective: WeaponEffective) -> int:
    if effective.cycle_time_sec <= 0.0:
        return 0
    return int(floor(window_sec / effective.cycle_time_sec)) * effective.shots_per_cycle


def simulate(
    weapons: Sequence[WeaponDeclared],
    effective: Sequence[WeaponEffective],
    window_sec: float,
    gap_tolerance_sec: float,
    *,
    max_events: int = MAX_SCHEDULE_EVENTS,
    logger: Optional[ChannelLogger] = None,
) -> ScheduleResult:
    if len(weapons) != len(effective):
        raise ValueError("declared and effective weapon lists must be parallel")

    # (next fire time, shot index within the current salvo) per weapon
    state: List[Tuple[float, int]] = [
        (0.0, 0) if eff.cycle_time_sec > 0.0 else (inf, 0) for eff in effective
    ]
    actual = [0] * len(weapons)
    events: List[FireEvent] = []
    truncated = False

    clock = 0.0
    while clock < window_sec:
        ready = None
        next_pending = inf
        for index, (fire_at, _) in enumerate(state):
            if fire_at >= window_sec:
                continue
            if fire_at <= clock + SCHEDULE_TIME_EPS:
                ready = index
                break
            next_pending = min(next_pending, fire_at)

        if ready is None:
            if next_pending == inf:
                break
            clock = next_pending
            continue

        if len(events) >= max_events:
            truncated = True
            break

        fire_at, shot_index = state[ready]
        clock = fire_at
        events.append(FireEvent(fire_at, weapons[ready].id, shot_index))
        actual[ready] += 1

        eff = effective[ready]
        next_shot = shot_index + 1
        if next_shot < eff.shots_per_cycle and eff.salvo_duration_sec > 0.0:
            state[ready] = (fire_at + eff.salvo_duration_sec / eff.shots_per_cycle, next_shot)
        else:
            state[ready] = (fire_at + eff.cycle_time_sec, 0)

    if truncated and logger:
        logger.warning("Schedule truncated at %d events before %.2fs", max_events, window_sec)

    counts = tuple(
        WeaponShotCount(weapon.id, expected_shots(window_sec, eff), shots)
        for weapon, eff, shots in zip(weapons, effective, actual)
    )
    gaps = find_gaps(events, gap_tolerance_sec)
    if logger and logger.enabled:
        logger.debug(
            "Simulated %d weapon(s) over %.2fs: events=%d gaps=%d",
            len(weapons),
            window_sec,
            len(events),
            len(gaps),
        )
    return ScheduleResult(
        events=tuple(events),
        window_sec=window_sec,
        shot_counts=counts,
        gaps=tuple(gaps),
        truncated=truncated,
    )


def find_gaps(events: Sequence[FireEvent], tolerance_sec: float) -> List[Gap]:
    ordered = sorted(events, key=lambda event: event.time_sec)
    gaps: List[Gap] = []
    for before, after in zip(ordered, ordered[1:]):
        duration = after.time_sec - before.time_sec
        if duration >= tolerance_sec:
            gaps.append(
                Gap(
                    start_sec=before.time_sec,
                    end_sec=after.time_sec,
                    duration_sec=duration,
                    weapons_around=(before.weapon_id, after.weapon_id),
                )
            )
    return gaps


__all__ = [
    "FireEvent",
    "Gap",
    "WeaponShotCount",
    "ScheduleResult",
    "expected_shots",
    "simulate",
    "find_gaps",
]
