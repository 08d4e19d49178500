"""Declared weapon data and derived cadence/DPS figures."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from simlint.blueprint.values import LuaTable
from simlint.combat.formulas import (
    clamp_rate_of_fire,
    cycle_time_sec,
    effective_dps,
    nominal_dps,
    salvo_duration_sec,
    shots_per_cycle,
    total_damage_per_shot,
    whole_count,
)
from simlint.combat.projectiles import ProjectileDatabase

_WEAPON_ID_FIELDS = ("BlueprintId", "weapon_bp_id", "Label")


def _categories(table: LuaTable) -> Tuple[str, ...]:
    categories = table.get_table("TargetCategories")
    if categories is None:
        return ()
    return tuple(item for item in categories.array() if isinstance(item, str))


@dataclass(frozen=True)
class WeaponDeclared:
    id: str
    damage: float
    damage_radius: float = 0.0
    projectiles_per_fire: int = 1
    rate_of_fire: float = 1.0
    max_range: float = 0.0
    initial_damage: Optional[float] = None
    projectile_id: Optional[str] = None
    fragment_count: Optional[int] = None
    fragment_damage: Optional[float] = None
    muzzle_velocity: Optional[float] = None
    salvo_size: Optional[int] = None
    salvo_delay: Optional[float] = None
    reload_time: Optional[float] = None
    rack_salvo_size: Optional[int] = None
    rack_salvo_reload_time: Optional[float] = None
    muzzle_salvo_size: Optional[int] = None
    muzzle_salvo_delay: Optional[float] = None
    turret_capable: bool = False
    target_categories: Tuple[str, ...] = ()

    @classmethod
    def from_table(
        cls,
        table: LuaTable,
        *,
        position: int = 1,
        projectiles: Optional[ProjectileDatabase] = None,
    ) -> Optional["WeaponDeclared"]:
        """Read one weapon; ``None`` when the table declares no damage.

        Rack/muzzle salvo fields drive cadence when present. A muzzle
        salvo supplies the shots of a cycle, and each rack fires one such
        salvo, so the legacy ``ProjectilesPerOnFire`` only applies to
        weapons that declare neither.
        """

        damage = table.get_num("Damage")
        if damage is None:
            return None

        weapon_id = next(
            (table.get_str(key) for key in _WEAPON_ID_FIELDS if table.get_str(key)),
            f"weapon{position}",
        )

        rack_salvo_size = whole_count(table.get_num("RackSalvoSize"))
        rack_reload = table.get_num("RackSalvoReloadTime")
        muzzle_salvo_size = whole_count(table.get_num("MuzzleSalvoSize"))
        muzzle_salvo_delay = table.get_num("MuzzleSalvoDelay")

        salvo_size = whole_count(table.get_num("SalvoSize"))
        if salvo_size is None:
            salvo_size = muzzle_salvo_size
        salvo_delay = table.get_num("SalvoDelay")
        if salvo_delay is None:
            salvo_delay = muzzle_salvo_delay
        reload_time = table.get_num("ReloadTime")
        if reload_time is None:
            reload_time = rack_reload

        if rack_salvo_size is not None or muzzle_salvo_size is not None:
            projectiles_per_fire = max(1, rack_salvo_size or 1)
        else:
            projectiles_per_fire = max(1, whole_count(table.get_num("ProjectilesPerOnFire")) or 1)

        muzzle_velocity = table.get_num("MuzzleVelocity")
        if muzzle_velocity is not None and muzzle_velocity <= 0.0:
            muzzle_velocity = None

        projectile_id = table.get_str("ProjectileId")
        fragment_count, fragment_damage = (None, None)
        if projectiles is not None:
            fragment_count, fragment_damage = projectiles.fragments_for(projectile_id)

        rate_of_fire = table.get_num("RateOfFire")
        if rate_of_fire is None:
            rate_of_fire = 1.0
        initial_damage = table.get_num("InitialDamage")
        return cls(
            id=weapon_id,
            damage=max(0.0, damage),
            damage_radius=table.get_num("DamageRadius") or 0.0,
            projectiles_per_fire=projectiles_per_fire,
            rate_of_fire=clamp_rate_of_fire(rate_of_fire),
            max_range=table.get_num("MaxRadius") or 0.0,
            initial_damage=initial_damage,
            projectile_id=projectile_id,
            fragment_count=fragment_count,
            fragment_damage=fragment_damage,
            muzzle_velocity=muzzle_velocity,
            salvo_size=salvo_size,
            salvo_delay=salvo_delay,
            reload_time=reload_time,
            rack_salvo_size=rack_salvo_size,
            rack_salvo_reload_time=rack_reload,
            muzzle_salvo_size=muzzle_salvo_size,
            muzzle_salvo_delay=muzzle_salvo_delay,
            turret_capable=bool(table.get_bool("TurretCapable")),
            target_categories=_categories(table),
        )

    @property
    def damage_per_shot(self) -> float:
        return total_damage_per_shot(
            self.damage,
            self.initial_damage,
            self.fragment_count,
            self.fragment_damage,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "damage": self.damage,
            "damageRadius": self.damage_radius,
            "projectilesPerFire": self.projectiles_per_fire,
            "rateOfFire": self.rate_of_fire,
            "maxRange": self.max_range,
            "initialDamage": self.initial_damage,
            "projectileId": self.projectile_id,
            "fragmentCount": self.fragment_count,
            "fragmentDamage": self.fragment_damage,
            "muzzleVelocity": self.muzzle_velocity,
            "salvoSize": self.salvo_size,
            "salvoDelay": self.salvo_delay,
            "reloadTime": self.reload_time,
            "rackSalvoSize": self.rack_salvo_size,
            "rackSalvoReloadTime": self.rack_salvo_reload_time,
            "muzzleSalvoSize": self.muzzle_salvo_size,
            "muzzleSalvoDelay": self.muzzle_salvo_delay,
            "turretCapable": self.turret_capable,
            "targetCategories": list(self.target_categories),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "WeaponDeclared":
        return cls(
            id=data["id"],
            damage=float(data.get("damage", 0.0)),
            damage_radius=float(data.get("damageRadius", 0.0)),
            projectiles_per_fire=int(data.get("projectilesPerFire", 1)),
            rate_of_fire=float(data.get("rateOfFire", 1.0)),
            max_range=float(data.get("maxRange", 0.0)),
            initial_damage=data.get("initialDamage"),
            projectile_id=data.get("projectileId"),
            fragment_count=data.get("fragmentCount"),
            fragment_damage=data.get("fragmentDamage"),
            muzzle_velocity=data.get("muzzleVelocity"),
            salvo_size=data.get("salvoSize"),
            salvo_delay=data.get("salvoDelay"),
            reload_time=data.get("reloadTime"),
            rack_salvo_size=data.get("rackSalvoSize"),
            rack_salvo_reload_time=data.get("rackSalvoReloadTime"),
            muzzle_salvo_size=data.get("muzzleSalvoSize"),
            muzzle_salvo_delay=data.get("muzzleSalvoDelay"),
            turret_capable=bool(data.get("turretCapable", False)),
            target_categories=tuple(data.get("targetCategories", ())),
        )


@dataclass(frozen=True)
class TargetClassDps:
    category: str
    effective_dps: float
    modifier_note: Optional[str] = None


@dataclass(frozen=True)
class WeaponEffective:
    weapon_id: str
    nominal_dps: float
    effective_dps: float
    cycle_time_sec: float
    shots_per_cycle: int
    salvo_duration_sec: float
    reload_sec: float
    target_class_dps: Tuple[TargetClassDps, ...] = field(default_factory=tuple)

    @classmethod
    def from_declared(cls, weapon: WeaponDeclared) -> "WeaponEffective":
        damage = weapon.damage_per_shot
        effective = effective_dps(
            damage,
            weapon.projectiles_per_fire,
            weapon.rate_of_fire,
            weapon.reload_time,
            weapon.salvo_size,
            weapon.salvo_delay,
        )
        cycle = cycle_time_sec(weapon.rate_of_fire, weapon.reload_time)
        # Same figure for every category until per-category modifiers exist.
        per_category = tuple(
            TargetClassDps(category=category, effective_dps=effective)
            for category in weapon.target_categories
        )
        return cls(
            weapon_id=weapon.id,
            nominal_dps=nominal_dps(damage, weapon.projectiles_per_fire, weapon.rate_of_fire),
            effective_dps=effective,
            cycle_time_sec=cycle,
            shots_per_cycle=shots_per_cycle(weapon.salvo_size),
            salvo_duration_sec=salvo_duration_sec(weapon.salvo_size, weapon.salvo_delay),
            reload_sec=cycle,
            target_class_dps=per_category,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weaponId": self.weapon_id,
            "nominalDps": self.nominal_dps,
            "effectiveDps": self.effective_dps,
            "cycleTimeSec": self.cycle_time_sec,
            "shotsPerCycle": self.shots_per_cycle,
            "salvoDurationSec": self.salvo_duration_sec,
            "reloadSec": self.reload_sec,
            "targetClassDps": [
                {
                    "category": entry.category,
                    "effectiveDps": entry.effective_dps,
                    "modifierNote": entry.modifier_note,
                }
                for entry in self.target_class_dps
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "WeaponEffective":
        return cls(
            weapon_id=data["weaponId"],
            nominal_dps=float(data.get("nominalDps", 0.0)),
            effective_dps=float(data.get("effectiveDps", 0.0)),
            cycle_time_sec=float(data.get("cycleTimeSec", 0.0)),
            shots_per_cycle=int(data.get("shotsPerCycle", 1)),
            salvo_duration_sec=float(data.get("salvoDurationSec", 0.0)),
            reload_sec=float(data.get("reloadSec", 0.0)),
            target_class_dps=tuple(
                TargetClassDps(
                    category=entry["category"],
                    effective_dps=float(entry.get("effectiveDps", 0.0)),
                    modifier_note=entry.get("modifierNote"),
                )
                for entry in data.get("targetClassDps", [])
            ),
        )


def weapons_from_unit(
    root: LuaTable,
    projectiles: Optional[ProjectileDatabase] = None,
) -> List[WeaponDeclared]:
    """Collect weapons from the ``Weapon`` array, or a single nested weapon table."""

    weapons: List[WeaponDeclared] = []
    table = root.get_table("Weapon")
    if table is None:
        return weapons
    for position, entry in enumerate(table.array(), start=1):
        if isinstance(entry, LuaTable):
            weapon = WeaponDeclared.from_table(entry, position=position, projectiles=projectiles)
            if weapon is not None:
                weapons.append(weapon)
    if not weapons:
        weapon = WeaponDeclared.from_table(table, projectiles=projectiles)
        if weapon is not None:
            weapons.append(weapon)
    return weapons


__all__ = [
    "WeaponDeclared",
    "WeaponEffective",
    "TargetClassDps",
    "weapons_from_unit",
]
