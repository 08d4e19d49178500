"""Unit identity, extraction, and the per-unit analysis summary."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from simlint.analysis.anomaly import Anomaly, detect_anomalies
from simlint.blueprint.parser import parse_blueprint
from simlint.blueprint.values import LuaTable
from simlint.combat.projectiles import ProjectileDatabase
from simlint.combat.weapons import WeaponDeclared, WeaponEffective, weapons_from_unit
from simlint.engine.config import ScanConfig
from simlint.engine.logger import ScanLogger, channel_of
from simlint.sim.scheduler import simulate

_UNIT_ID_FIELDS = ("BlueprintId", "UnitId", "ID")
_UNIT_NAME_FIELDS = ("DisplayName", "Name", "Description")


def normalize_id(value: str) -> str:
    return value.strip().lower()


@dataclass(frozen=True)
class UnitId:
    id: str
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or self.id

    def matches(self, query: str) -> bool:
        key = normalize_id(query)
        if normalize_id(self.id) == key:
            return True
        return self.name is not None and normalize_id(self.name) == key


@dataclass(frozen=True)
class UnitSummary:
    unit_id: UnitId
    blueprint_path: str
    weapons: Tuple[WeaponDeclared, ...]
    effective: Tuple[WeaponEffective, ...]
    anomalies: Tuple[Anomaly, ...]
    declared_dps_override: Optional[float] = None

    def __post_init__(self) -> None:
        if len(self.weapons) != len(self.effective):
            raise ValueError("weapons and effective stats must be parallel")

    @property
    def total_effective_dps(self) -> float:
        return sum(weapon.effective_dps for weapon in self.effective)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unitId": {"id": self.unit_id.id, "name": self.unit_id.name},
            "blueprintPath": self.blueprint_path,
            "weapons": [weapon.to_dict() for weapon in self.weapons],
            "effective": [weapon.to_dict() for weapon in self.effective],
            "anomalies": [anomaly.to_dict() for anomaly in self.anomalies],
            "declaredDpsOverride": self.declared_dps_override,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "UnitSummary":
        unit = data["unitId"]
        return cls(
            unit_id=UnitId(id=unit["id"], name=unit.get("name")),
            blueprint_path=data.get("blueprintPath", ""),
            weapons=tuple(WeaponDeclared.from_dict(entry) for entry in data.get("weapons", [])),
            effective=tuple(WeaponEffective.from_dict(entry) for entry in data.get("effective", [])),
            anomalies=tuple(Anomaly.from_dict(entry) for entry in data.get("anomalies", [])),
            declared_dps_override=data.get("declaredDpsOverride"),
        )


def unit_id_from_table(root: LuaTable) -> Optional[UnitId]:
    unit_id = next((root.get_str(key) for key in _UNIT_ID_FIELDS if root.get_str(key)), None)
    if unit_id is None:
        return None
    name = next((root.get_str(key) for key in _UNIT_NAME_FIELDS if root.get_str(key)), None)
    if name is None:
        general = root.get_table("General")
        if general is not None:
            name = general.get_str("UnitName")
    return UnitId(id=unit_id, name=name)


def unit_id_from_path(path: str) -> UnitId:
    stem = PurePath(path.replace("\\", "/")).stem or "unknown"
    if stem.endswith("_unit"):
        stem = stem[: -len("_unit")]
    return UnitId(id=stem)


def build_unit_summary(
    unit_id: UnitId,
    blueprint_path: str,
    weapons: Sequence[WeaponDeclared],
    config: ScanConfig,
    declared_dps_override: Optional[float] = None,
    logger: Optional[ScanLogger] = None,
) -> UnitSummary:
    effective = tuple(WeaponEffective.from_declared(weapon) for weapon in weapons)
    schedule = None
    if len(weapons) > 1:
        schedule = simulate(
            weapons,
            effective,
            config.simulation_seconds,
            config.cadence_gap_tolerance_secs,
            logger=channel_of(logger, "scheduler"),
        )
    anomalies = detect_anomalies(
        unit_id.id,
        [weapon.id for weapon in weapons],
        effective,
        schedule,
        config.cadence_gap_tolerance_secs,
        declared_dps_override,
        logger=channel_of(logger, "anomaly"),
    )
    return UnitSummary(
        unit_id=unit_id,
        blueprint_path=blueprint_path,
        weapons=tuple(weapons),
        effective=effective,
        anomalies=tuple(anomalies),
        declared_dps_override=declared_dps_override,
    )


def unit_summary_from_text(
    path: str,
    text: str,
    config: Optional[ScanConfig] = None,
    declared_dps_overrides: Optional[Mapping[str, float]] = None,
    projectiles: Optional[ProjectileDatabase] = None,
    logger: Optional[ScanLogger] = None,
) -> Optional[UnitSummary]:
    """Analyze one blueprint file.

    Returns ``None`` when the file declares no weapons. Raises
    ``ParseError`` when the text is not a readable blueprint.
    """

    config = config or ScanConfig()
    root = parse_blueprint(text, channel_of(logger, "parser"))
    if not isinstance(root, LuaTable):
        return None
    unit_id = unit_id_from_table(root) or unit_id_from_path(path)
    weapons = weapons_from_unit(root, projectiles)
    model_log = channel_of(logger, "model")
    if not weapons:
        if model_log:
            model_log.debug("No weapons in %s", path)
        return None
    if model_log:
        model_log.debug("Unit %s: %d weapon(s) from %s", unit_id.id, len(weapons), path)
    override = None
    if declared_dps_overrides is not None:
        override = declared_dps_overrides.get(normalize_id(unit_id.id))
    return build_unit_summary(unit_id, path, weapons, config, override, logger=logger)


__all__ = [
    "UnitId",
    "UnitSummary",
    "normalize_id",
    "unit_id_from_table",
    "unit_id_from_path",
    "build_unit_summary",
    "unit_summary_from_text",
]
