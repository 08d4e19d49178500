"""Blueprint discovery and scan entry point."""
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from simlint.blueprint.parser import ParseError
from simlint.combat.projectiles import ProjectileDatabase
from simlint.engine.config import (
    MAX_BLUEPRINT_FILE_BYTES,
    MAX_BLUEPRINT_FILES,
    ScanConfig,
    SimlintError,
)
from simlint.engine.logger import ScanLogger, channel_of
from simlint.units.summary import UnitSummary, unit_summary_from_text

UNIT_BP_SUFFIX = "_unit.bp"


def resolve_scan_dirs(data_dir: Path) -> Tuple[Path, Optional[Path]]:
    """Return (units root, projectiles root) for a data directory."""

    data_dir = data_dir.resolve()
    units = data_dir / "units"
    projectiles = data_dir / "projectiles"
    if units.is_dir():
        return units, projectiles if projectiles.is_dir() else None
    if data_dir.name == "units":
        sibling = data_dir.parent / "projectiles"
        if sibling.is_dir():
            return data_dir, sibling
    return data_dir, None


def _is_unit_blueprint(path: Path) -> bool:
    name = path.name
    if path.suffix == ".lua":
        return not name.lower().endswith("_script.lua")
    return name.endswith(UNIT_BP_SUFFIX)


def collect_unit_files(root: Path, limit: int = MAX_BLUEPRINT_FILES) -> List[Path]:
    files = sorted(path for path in root.rglob("*") if path.is_file() and _is_unit_blueprint(path))
    return files[:limit]


def check_file_bounds(path: Path, root: Path, max_bytes: int = MAX_BLUEPRINT_FILE_BYTES) -> int:
    resolved = path.resolve()
    try:
        resolved.relative_to(root.resolve())
    except ValueError:
        raise SimlintError(f"path escapes data directory: {path}") from None
    size = resolved.stat().st_size
    if size > max_bytes:
        raise SimlintError(f"file too large: {size} bytes (max {max_bytes})")
    return size


def load_declared_dps(path: Path) -> Dict[str, float]:
    """Read ``{"unit_id": dps}``; keys are lower-cased, non-numbers skipped."""

    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise SimlintError(f"cannot read declared DPS file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SimlintError(f"declared DPS file {path} must hold a JSON object")
    overrides: Dict[str, float] = {}
    for unit_id, value in data.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        overrides[unit_id.strip().lower()] = float(value)
    return overrides


@dataclass
class ScanReport:
    units: List[UnitSummary] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    files_seen: int = 0


class BlueprintContent:
    """Unit files and the shared projectile table for one data directory."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.units_root, self.projectiles_root = resolve_scan_dirs(data_dir)
        self.projectiles = ProjectileDatabase()
        self.unit_files: List[Path] = []

    def load(self, logger: Optional[ScanLogger] = None) -> None:
        scan_log = channel_of(logger, "scan")
        if self.projectiles_root is not None:
            self.projectiles.load_directory(self.projectiles_root, scan_log)
        self.unit_files = collect_unit_files(self.units_root)
        if scan_log:
            scan_log.info("Found %d unit blueprint file(s) under %s", len(self.unit_files), self.units_root)

    def analyze_file(
        self,
        path: Path,
        config: ScanConfig,
        declared_dps: Optional[Mapping[str, float]] = None,
        logger: Optional[ScanLogger] = None,
    ) -> Optional[UnitSummary]:
        check_file_bounds(path, self.units_root)
        text = path.read_text(encoding="utf-8")
        return unit_summary_from_text(
            str(path),
            text,
            config,
            declared_dps,
            self.projectiles if len(self.projectiles) else None,
            logger,
        )


def scan_units(
    data_dir: Path,
    config: ScanConfig,
    declared_dps: Optional[Mapping[str, float]] = None,
    logger: Optional[ScanLogger] = None,
) -> ScanReport:
    """Analyze every unit blueprint under ``data_dir``.

    Unreadable or malformed files are logged and skipped. Results keep
    file order regardless of ``config.workers``.
    """

    if not data_dir.is_dir():
        raise SimlintError(f"data directory does not exist: {data_dir}")
    content = BlueprintContent(data_dir)
    content.load(logger)

    def analyze(path: Path) -> Tuple[Path, Optional[UnitSummary], Optional[str]]:
        try:
            return path, content.analyze_file(path, config, declared_dps, logger), None
        except (ParseError, SimlintError, OSError, UnicodeDecodeError) as exc:
            return path, None, str(exc)

    if config.workers > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as pool:
            results = list(pool.map(analyze, content.unit_files))
    else:
        results = [analyze(path) for path in content.unit_files]

    report = ScanReport(files_seen=len(content.unit_files))
    scan_log = channel_of(logger, "scan")
    for path, summary, error in results:
        if error is not None:
            report.skipped.append((str(path), error))
            if scan_log:
                scan_log.warning("Skipping %s: %s", path, error)
        elif summary is not None:
            report.units.append(summary)
    if scan_log:
        scan_log.info(
            "Scanned %d file(s): %d unit(s), %d skipped",
            report.files_seen,
            len(report.units),
            len(report.skipped),
        )
    return report


__all__ = [
    "BlueprintContent",
    "ScanReport",
    "resolve_scan_dirs",
    "collect_unit_files",
    "check_file_bounds",
    "load_declared_dps",
    "scan_units",
]
