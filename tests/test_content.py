import json
import logging
from pathlib import Path

import pytest

from simlint.analysis.anomaly import DECLARED_VS_EFFECTIVE, UNIT_TOTAL_LABEL, AnomalySeverity
from simlint.assets.content import (
    check_file_bounds,
    collect_unit_files,
    load_declared_dps,
    resolve_scan_dirs,
    scan_units,
)
from simlint.engine.config import ScanConfig, SimlintError
from simlint.engine.logger import DEFAULT_CHANNELS, LoggerConfig, ScanLogger
from simlint.units.summary import UnitId, unit_summary_from_text

DATA_DIR = Path(__file__).resolve().parents[1] / "simlint" / "assets" / "data"


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_scan_sample_data() -> None:
    report = scan_units(DATA_DIR, ScanConfig())
    assert report.files_seen == 3
    assert report.skipped == []
    assert [unit.unit_id.id for unit in report.units] == ["ual0107", "uel0101", "xsl0103"]
    artillery = report.units[2]
    assert artillery.unit_id.name == "<LOC xsl0103_desc>Mobile Light Artillery"
    assert artillery.weapons[0].fragment_count == 3
    assert artillery.total_effective_dps == pytest.approx(32.0)


def test_script_files_are_not_blueprints() -> None:
    names = [path.name for path in collect_unit_files(DATA_DIR / "units")]
    assert "xsl0103_script.lua" not in names
    assert names == ["ual0107.lua", "uel0101.lua", "xsl0103_unit.bp"]
    assert len(collect_unit_files(DATA_DIR / "units", limit=1)) == 1


def test_bad_files_are_skipped(tmp_path: Path) -> None:
    _write(tmp_path / "units" / "good.lua", "{ UnitId = 'good', Weapon = { { Damage = 10 } } }")
    _write(tmp_path / "units" / "broken.lua", "{ Weapon = { { Damage = ")
    _write(tmp_path / "units" / "wall.lua", "{ UnitId = 'wall', Name = 'Wall' }")
    report = scan_units(tmp_path, ScanConfig())
    assert report.files_seen == 3
    assert [unit.unit_id.id for unit in report.units] == ["good"]
    assert len(report.skipped) == 1
    assert report.skipped[0][0].endswith("broken.lua")


def test_non_finite_numbers_do_not_abort_scan(tmp_path: Path) -> None:
    _write(tmp_path / "projectiles" / "P" / "P_proj.bp", "ProjectileBlueprint { Physics = { Fragments = 1e999 } }")
    _write(tmp_path / "units" / "odd.lua", "{ [1e999] = 1, UnitId = 'odd', Weapon = { { Damage = 5 } } }")
    _write(
        tmp_path / "units" / "good.lua",
        "{ UnitId = 'good', Weapon = { { Damage = 10, ProjectileId = '/projectiles/P/P_proj.bp' } } }",
    )
    report = scan_units(tmp_path, ScanConfig())
    assert report.skipped == []
    assert [unit.unit_id.id for unit in report.units] == ["good", "odd"]
    assert report.units[0].weapons[0].fragment_count is None
    assert report.units[0].total_effective_dps == pytest.approx(10.0)


def test_worker_pool_keeps_file_order(tmp_path: Path) -> None:
    for index in range(12):
        _write(tmp_path / "units" / f"u{index:02d}.lua", f"{{ UnitId = 'u{index:02d}', Weapon = {{ {{ Damage = {index + 1} }} }} }}")
    serial = scan_units(tmp_path, ScanConfig(workers=1))
    pooled = scan_units(tmp_path, ScanConfig(workers=4))
    assert [unit.unit_id.id for unit in pooled.units] == [unit.unit_id.id for unit in serial.units]
    assert pooled.units == serial.units


def test_declared_dps_override(tmp_path: Path) -> None:
    path = _write(tmp_path / "declared.json", json.dumps({" UEL0101 ": 30, "skipme": "fast", "flag": True}))
    declared = load_declared_dps(path)
    assert declared == {"uel0101": 30.0}

    report = scan_units(DATA_DIR, ScanConfig(), declared)
    tank = next(unit for unit in report.units if unit.unit_id.id == "uel0101")
    assert tank.declared_dps_override == 30.0
    assert [anomaly.code for anomaly in tank.anomalies] == [DECLARED_VS_EFFECTIVE]
    assert tank.anomalies[0].weapon_ids == (UNIT_TOTAL_LABEL,)
    assert tank.anomalies[0].severity is AnomalySeverity.WARN


def test_malformed_declared_dps(tmp_path: Path) -> None:
    with pytest.raises(SimlintError):
        load_declared_dps(_write(tmp_path / "bad.json", "{ not json"))
    with pytest.raises(SimlintError):
        load_declared_dps(_write(tmp_path / "list.json", "[1, 2]"))


def test_file_bounds(tmp_path: Path) -> None:
    root = tmp_path / "units"
    inside = _write(root / "big.lua", "{ Damage = 1 }" * 10)
    assert check_file_bounds(inside, root) == inside.stat().st_size
    with pytest.raises(SimlintError):
        check_file_bounds(inside, root, max_bytes=10)
    outside = _write(tmp_path / "elsewhere.lua", "{}")
    with pytest.raises(SimlintError):
        check_file_bounds(outside, root)


def test_resolve_scan_dirs(tmp_path: Path) -> None:
    (tmp_path / "units").mkdir()
    assert resolve_scan_dirs(tmp_path) == ((tmp_path / "units").resolve(), None)
    (tmp_path / "projectiles").mkdir()
    units, projectiles = resolve_scan_dirs(tmp_path / "units")
    assert units == (tmp_path / "units").resolve()
    assert projectiles == (tmp_path / "projectiles").resolve()
    flat = tmp_path / "flat"
    flat.mkdir()
    assert resolve_scan_dirs(flat) == (flat.resolve(), None)


def test_missing_data_dir(tmp_path: Path) -> None:
    with pytest.raises(SimlintError):
        scan_units(tmp_path / "nope", ScanConfig())


def test_unit_identity_fallbacks() -> None:
    summary = unit_summary_from_text(
        "units/XYZ0001/xyz0001_unit.bp",
        "UnitBlueprint { General = { UnitName = 'Gatekeeper' }, Weapon = { { Damage = 5 } } }",
    )
    assert summary.unit_id == UnitId(id="xyz0001", name=None)

    summary = unit_summary_from_text(
        "a.lua",
        "{ BlueprintId = 'abc', General = { UnitName = 'Gatekeeper' }, Weapon = { { Damage = 5 } } }",
    )
    assert summary.unit_id == UnitId(id="abc", name="Gatekeeper")
    assert summary.unit_id.matches("  GATEKEEPER ")
    assert summary.unit_id.matches("ABC")
    assert not summary.unit_id.matches("abd")


def test_non_table_and_weaponless_files() -> None:
    assert unit_summary_from_text("x.lua", "'just a string'") is None
    assert unit_summary_from_text("x.lua", "{ Name = 'Wall' }") is None


def test_scan_logs_on_enabled_channels(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="simlint")
    logger = ScanLogger(LoggerConfig(level=logging.DEBUG, channels=DEFAULT_CHANNELS.copy()), configure_root=False)
    scan_units(DATA_DIR, ScanConfig(), logger=logger)
    names = {record.name for record in caplog.records}
    assert "simlint.scan" in names
    assert "simlint.anomaly" in names
    assert "simlint.parser" not in names
    assert "simlint.scheduler" not in names
