"""Anomaly rules over computed weapon stats and simulated schedules."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from simlint.combat.formulas import dps_ratio, is_dps_mismatch, ratio_out_of_band
from simlint.combat.weapons import WeaponEffective
from simlint.engine.logger import ChannelLogger
from simlint.sim.scheduler import ScheduleResult

DECLARED_VS_EFFECTIVE = "DECLARED_VS_EFFECTIVE"
CADENCE_INTERFERENCE = "CADENCE_INTERFERENCE"
SALVO_COOLDOWN_PATTERN = "SALVO_COOLDOWN_PATTERN"

UNIT_TOTAL_LABEL = "(unit total)"
CADENCE_SHOT_RATIO = 0.95
GAP_FLAG_MULTIPLIER = 2.0


class AnomalySeverity(str, Enum):
    INFO = "info"
    WARN = "warn"
    CRIT = "crit"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AnomalySeverity.INFO: 1,
    AnomalySeverity.WARN: 2,
    AnomalySeverity.CRIT: 3,
}


@dataclass(frozen=True)
class Anomaly:
    code: str
    severity: AnomalySeverity
    summary: str
    technical: str
    weapon_ids: Tuple[str, ...]
    unit_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity.value,
            "summary": self.summary,
            "technical": self.technical,
            "weaponIds": list(self.weapon_ids),
            "unitId": self.unit_id,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Anomaly":
        return cls(
            code=data["code"],
            severity=AnomalySeverity(data.get("severity", "info")),
            summary=data.get("summary", ""),
            technical=data.get("technical", ""),
            weapon_ids=tuple(data.get("weaponIds", ())),
            unit_id=data.get("unitId"),
        )


def max_severity(anomalies: Sequence[Anomaly]) -> Optional[AnomalySeverity]:
    if not anomalies:
        return None
    return max((anomaly.severity for anomaly in anomalies), key=lambda sev: sev.rank)


def declared_vs_effective(
    unit_id: str,
    weapon_id: str,
    declared_dps: float,
    effective_dps: float,
) -> Optional[Anomaly]:
    """Flag a DPS mismatch beyond 1% of the declared figure."""

    if not is_dps_mismatch(declared_dps, effective_dps):
        return None
    ratio = dps_ratio(declared_dps, effective_dps)
    severity = AnomalySeverity.WARN if ratio_out_of_band(ratio) else AnomalySeverity.INFO
    return Anomaly(
        code=DECLARED_VS_EFFECTIVE,
        severity=severity,
        summary=(
            f"Unit {unit_id} weapon {weapon_id}: declared DPS {declared_dps:.1f} "
            f"vs effective {effective_dps:.1f} (ratio {ratio:.2f})."
        ),
        technical=(
            "Salvo/reload timing changes effective DPS from nominal. "
            f"declared={declared_dps} effective={effective_dps}"
        ),
        weapon_ids=(weapon_id,),
        unit_id=unit_id,
    )


def check_declared_vs_effective(
    unit_id: str,
    effective: Sequence[WeaponEffective],
    declared_dps_override: Optional[float] = None,
) -> List[Anomaly]:
    """Per-weapon nominal checks, or one unit-total check when an override is given."""

    found: List[Anomaly] = []
    if declared_dps_override is not None:
        total = sum(weapon.effective_dps for weapon in effective)
        anomaly = declared_vs_effective(unit_id, UNIT_TOTAL_LABEL, declared_dps_override, total)
        if anomaly is not None:
            found.append(anomaly)
        return found
    for weapon in effective:
        anomaly = declared_vs_effective(
            unit_id, weapon.weapon_id, weapon.nominal_dps, weapon.effective_dps
        )
        if anomaly is not None:
            found.append(anomaly)
    return found


def check_cadence_interference(
    unit_id: str,
    weapon_ids: Sequence[str],
    schedule: ScheduleResult,
) -> Optional[Anomaly]:
    if len(weapon_ids) <= 1:
        return None
    expected = schedule.expected_total
    actual = schedule.actual_total
    if expected <= 0 or actual >= expected * CADENCE_SHOT_RATIO:
        return None
    return Anomaly(
        code=CADENCE_INTERFERENCE,
        severity=AnomalySeverity.WARN,
        summary=(
            f"Unit {unit_id}: multi-weapon firing may reduce effective ROF "
            "(cadence interference suspected)."
        ),
        technical=(
            f"Over {schedule.window_sec}s expected {expected} shots, got {actual}. "
            f"Gaps: {len(schedule.gaps)}"
        ),
        weapon_ids=tuple(weapon_ids),
        unit_id=unit_id,
    )


def check_salvo_cooldown_gaps(
    unit_id: str,
    schedule: ScheduleResult,
    gap_tolerance_sec: float,
) -> List[Anomaly]:
    found: List[Anomaly] = []
    for gap in schedule.gaps:
        if gap.duration_sec <= gap_tolerance_sec * GAP_FLAG_MULTIPLIER:
            continue
        around = ",".join(gap.weapons_around)
        found.append(
            Anomaly(
                code=SALVO_COOLDOWN_PATTERN,
                severity=AnomalySeverity.INFO,
                summary=(
                    f"Unit {unit_id} weapon {around}: salvo/cooldown pattern "
                    "may cause unexpected gaps."
                ),
                technical=f"Gap {gap.duration_sec:.2f}s between {around}",
                weapon_ids=tuple(gap.weapons_around),
                unit_id=unit_id,
            )
        )
    return found


def detect_anomalies(
    unit_id: str,
    weapon_ids: Sequence[str],
    effective: Sequence[WeaponEffective],
    schedule: Optional[ScheduleResult],
    gap_tolerance_sec: float,
    declared_dps_override: Optional[float] = None,
    logger: Optional[ChannelLogger] = None,
) -> List[Anomaly]:
    """Run every rule; schedule rules only apply to multi-weapon units."""

    anomalies = check_declared_vs_effective(unit_id, effective, declared_dps_override)
    if schedule is not None and len(weapon_ids) > 1:
        cadence = check_cadence_interference(unit_id, weapon_ids, schedule)
        if cadence is not None:
            anomalies.append(cadence)
        anomalies.extend(check_salvo_cooldown_gaps(unit_id, schedule, gap_tolerance_sec))
    if logger and anomalies:
        worst = max_severity(anomalies)
        logger.info("Unit %s: %d anomaly(ies), worst=%s", unit_id, len(anomalies), worst.value)
    return anomalies


__all__ = [
    "Anomaly",
    "AnomalySeverity",
    "DECLARED_VS_EFFECTIVE",
    "CADENCE_INTERFERENCE",
    "SALVO_COOLDOWN_PATTERN",
    "declared_vs_effective",
    "check_declared_vs_effective",
    "check_cadence_interference",
    "check_salvo_cooldown_gaps",
    "detect_anomalies",
    "max_severity",
]
