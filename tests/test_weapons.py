from pathlib import Path

import pytest

from simlint.blueprint.parser import parse_blueprint
from simlint.combat.projectiles import (
    ProjectileData,
    ProjectileDatabase,
    normalize_projectile_path,
    projectile_from_table,
    projectile_key_from_path,
)
from simlint.combat.weapons import WeaponDeclared, WeaponEffective, weapons_from_unit

DATA_DIR = Path(__file__).resolve().parents[1] / "simlint" / "assets" / "data"


def _weapon(text: str) -> WeaponDeclared:
    weapon = WeaponDeclared.from_table(parse_blueprint(text))
    assert weapon is not None
    return weapon


def test_minimal_weapon_nominal_dps() -> None:
    weapon = _weapon("{ Damage = 100, RateOfFire = 2 }")
    effective = WeaponEffective.from_declared(weapon)
    assert effective.nominal_dps == pytest.approx(200.0)
    assert effective.effective_dps == pytest.approx(200.0)
    assert effective.cycle_time_sec == pytest.approx(0.5)
    assert effective.shots_per_cycle == 1
    assert weapon.id == "weapon1"


def test_weapon_without_damage_is_skipped() -> None:
    assert WeaponDeclared.from_table(parse_blueprint("{ Label = 'Death', RateOfFire = 1 }")) is None


def test_rate_of_fire_defaults_and_clamps() -> None:
    assert _weapon("{ Damage = 1 }").rate_of_fire == 1.0
    assert _weapon("{ Damage = 1, RateOfFire = 0 }").rate_of_fire == pytest.approx(0.001)


def test_sample_weapon_salvo_cycle() -> None:
    weapon = _weapon((DATA_DIR / "weapons" / "sample_weapon.lua").read_text())
    assert weapon.id == "test_weapon_01"
    assert weapon.projectiles_per_fire == 2
    assert weapon.salvo_size == 3
    effective = WeaponEffective.from_declared(weapon)
    assert effective.nominal_dps == pytest.approx(150.0)
    assert effective.effective_dps == pytest.approx(300.0 / 0.95)
    assert effective.salvo_duration_sec == pytest.approx(0.15)
    assert [entry.category for entry in effective.target_class_dps] == ["GROUND"]
    assert effective.target_class_dps[0].effective_dps == pytest.approx(effective.effective_dps)


def test_rack_and_muzzle_fields_drive_cadence() -> None:
    weapon = _weapon(
        "{ Damage = 10, ProjectilesPerOnFire = 9, RackSalvoSize = 2, MuzzleSalvoSize = 3,"
        " MuzzleSalvoDelay = 0.2, RackSalvoReloadTime = 1.5 }"
    )
    assert weapon.projectiles_per_fire == 2
    assert weapon.salvo_size == 3
    assert weapon.salvo_delay == pytest.approx(0.2)
    assert weapon.reload_time == pytest.approx(1.5)
    effective = WeaponEffective.from_declared(weapon)
    assert effective.effective_dps == pytest.approx(60.0 / 2.1)


def test_legacy_salvo_fields_win_over_muzzle() -> None:
    weapon = _weapon("{ Damage = 1, SalvoSize = 4, MuzzleSalvoSize = 2, SalvoDelay = 0.3, MuzzleSalvoDelay = 0.1 }")
    assert weapon.salvo_size == 4
    assert weapon.salvo_delay == pytest.approx(0.3)


def test_weapon_ids_fall_back_to_position() -> None:
    root = parse_blueprint(
        "{ Weapon = { { Damage = 1 }, { Label = 'NoDamage' }, { Damage = 2, Label = 'Gun' },"
        " { Damage = 3, weapon_bp_id = 'bp3', Label = 'Ignored' } } }"
    )
    weapons = weapons_from_unit(root)
    assert [weapon.id for weapon in weapons] == ["weapon1", "Gun", "bp3"]


def test_single_nested_weapon_table() -> None:
    weapons = weapons_from_unit(parse_blueprint("{ Weapon = { Damage = 7, RateOfFire = 1 } }"))
    assert len(weapons) == 1
    assert weapons[0].damage == 7.0


def test_unit_without_weapons() -> None:
    assert weapons_from_unit(parse_blueprint("{ Name = 'Wall' }")) == []


def test_projectile_path_normalization() -> None:
    assert normalize_projectile_path(" '\\Projectiles\\A\\A_proj.bp' ") == "projectiles/a/a_proj.bp"
    key = projectile_key_from_path(Path("/mods/x/Projectiles/Big/Big_proj.bp"))
    assert key == "projectiles/big/big_proj.bp"


def test_projectile_fragments_add_damage() -> None:
    projectiles = ProjectileDatabase()
    projectiles.load_directory(DATA_DIR / "projectiles")
    assert len(projectiles) == 2
    assert "/projectiles/SIFArtillery01/SIFArtillery01_proj.bp" in projectiles

    root = parse_blueprint((DATA_DIR / "units" / "xsl0103_unit.bp").read_text())
    weapons = weapons_from_unit(root, projectiles)
    assert [weapon.id for weapon in weapons] == ["MainGun"]
    weapon = weapons[0]
    assert weapon.fragment_count == 3
    assert weapon.fragment_damage == pytest.approx(20.0)
    assert weapon.damage_per_shot == pytest.approx(160.0)
    assert weapon.rate_of_fire == pytest.approx(0.2)
    effective = WeaponEffective.from_declared(weapon)
    assert effective.nominal_dps == pytest.approx(32.0)
    assert effective.effective_dps == pytest.approx(32.0)


def test_missing_fragment_projectile_counts_nothing() -> None:
    projectiles = ProjectileDatabase()
    projectiles.add("/projectiles/p/p_proj.bp", ProjectileData(fragment_count=4, fragment_id="/projectiles/gone.bp"))
    assert projectiles.fragments_for("/Projectiles/P/P_proj.bp") == (4, None)
    assert projectiles.fragments_for(None) == (None, None)
    weapon = WeaponDeclared.from_table(
        parse_blueprint("{ Damage = 10, ProjectileId = '/projectiles/p/p_proj.bp' }"),
        projectiles=projectiles,
    )
    assert weapon.damage_per_shot == pytest.approx(10.0)


def test_non_finite_counts_are_dropped() -> None:
    root = parse_blueprint("{ Physics = { Fragments = 1e999, FragmentId = '/projectiles/f/f_proj.bp' } }")
    assert projectile_from_table(root).fragment_count is None
    root = parse_blueprint("{ Physics = { Fragments = 1e999/1e999 } }")
    assert projectile_from_table(root).fragment_count is None

    weapon = _weapon("{ Damage = 10, RackSalvoSize = 1e999, ProjectilesPerOnFire = 1e999/1e999 }")
    assert weapon.projectiles_per_fire == 1
