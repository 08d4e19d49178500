"""Copy unit blueprints out of a game data folder or archive."""
from __future__ import annotations

import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Optional

from simlint.assets.content import UNIT_BP_SUFFIX
from simlint.engine.config import MAX_EXTRACT_FILES, SimlintError
from simlint.engine.logger import ChannelLogger

ARCHIVE_SUFFIXES = (".scd", ".zip")


def resolve_gamedata_path(path: Path) -> Path:
    if path.is_file():
        return path
    resolved = path.resolve()
    archive = resolved / "gamedata.scd"
    if archive.is_file():
        return archive
    folder = resolved / "gamedata"
    if folder.is_dir():
        return folder
    return resolved


def _units_folder(root: Path) -> Optional[Path]:
    for candidate in (root / "units", root / "gamedata" / "units"):
        if candidate.is_dir():
            return candidate
    if root.name == "units":
        return root
    return None


def _extract_archive(archive: Path, out_dir: Path, limit: int) -> int:
    count = 0
    with zipfile.ZipFile(archive) as bundle:
        for entry in bundle.infolist():
            if count >= limit:
                break
            name = entry.filename
            if entry.is_dir() or not name.endswith(UNIT_BP_SUFFIX):
                continue
            if "__MACOSX" in name or "\\" in name:
                continue
            target = out_dir / PurePosixPath(name).name
            with bundle.open(entry) as source, target.open("wb") as sink:
                shutil.copyfileobj(source, sink)
            count += 1
    return count


def _copy_tree(units: Path, out_dir: Path, limit: int) -> int:
    count = 0
    for path in sorted(units.rglob(f"*{UNIT_BP_SUFFIX}")):
        if count >= limit:
            break
        if path.is_file():
            shutil.copyfile(path, out_dir / path.name)
            count += 1
    return count


def extract_gamedata(
    gamedata: Path,
    out_dir: Path,
    *,
    limit: int = MAX_EXTRACT_FILES,
    logger: Optional[ChannelLogger] = None,
) -> int:
    """Copy every ``*_unit.bp`` into ``out_dir`` and return how many were written."""

    out_dir.mkdir(parents=True, exist_ok=True)
    if not gamedata.exists():
        raise SimlintError(f"gamedata path does not exist: {gamedata}")
    if gamedata.is_file():
        if gamedata.suffix.lower() not in ARCHIVE_SUFFIXES:
            raise SimlintError("gamedata path is a file but not .scd or .zip")
        try:
            count = _extract_archive(gamedata, out_dir, limit)
        except zipfile.BadZipFile as exc:
            raise SimlintError(f"cannot open archive {gamedata}: {exc}") from exc
    else:
        units = _units_folder(gamedata.resolve())
        if units is None:
            raise SimlintError(
                f"no units folder found under {gamedata} "
                "(expected gamedata/units, a units folder, or .scd/.zip)"
            )
        count = _copy_tree(units, out_dir, limit)
    if logger:
        logger.info("Extracted %d unit blueprint(s) to %s", count, out_dir)
    return count


__all__ = ["extract_gamedata", "resolve_gamedata_path"]
