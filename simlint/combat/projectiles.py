"""Projectile blueprint data used to resolve weapon fragment damage."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from simlint.blueprint.parser import ParseError, parse_blueprint
from simlint.blueprint.values import LuaTable
from simlint.combat.formulas import whole_count
from simlint.engine.config import MAX_BLUEPRINT_FILE_BYTES, MAX_BLUEPRINT_FILES
from simlint.engine.logger import ChannelLogger

PROJECTILE_SUFFIX = "_proj.bp"


@dataclass(frozen=True)
class ProjectileData:
    fragment_count: Optional[int] = None
    fragment_id: Optional[str] = None
    damage: Optional[float] = None


def normalize_projectile_path(path: str) -> str:
    """Lower-case, forward slashes, no leading slash."""

    key = path.strip().strip("\"'").replace("\\", "/").lower()
    return key.lstrip("/")


def projectile_key_from_path(path: Path) -> str:
    text = str(path).replace("\\", "/")
    index = text.lower().find("projectiles/")
    if index >= 0:
        text = text[index:]
    return normalize_projectile_path(text)


def projectile_from_table(root: LuaTable) -> Optional[ProjectileData]:
    physics = root.get_table("Physics")
    if physics is None:
        return None
    damage = root.get_num("Damage")
    if damage is None:
        damage = physics.get_num("Damage")
    return ProjectileData(
        fragment_count=whole_count(physics.get_num("Fragments")),
        fragment_id=physics.get_str("FragmentId"),
        damage=damage,
    )


class ProjectileDatabase:
    """Lookup table keyed by normalized projectile path.

    Built once before any unit is scanned and only read afterwards, so a
    single instance can be shared across scan workers.
    """

    def __init__(self) -> None:
        self._projectiles: Dict[str, ProjectileData] = {}

    def __len__(self) -> int:
        return len(self._projectiles)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and normalize_projectile_path(path) in self._projectiles

    def add(self, path: str, data: ProjectileData) -> None:
        self._projectiles[normalize_projectile_path(path)] = data

    def get(self, path: Optional[str]) -> Optional[ProjectileData]:
        if not path:
            return None
        return self._projectiles.get(normalize_projectile_path(path))

    def fragments_for(self, projectile_id: Optional[str]) -> Tuple[Optional[int], Optional[float]]:
        """Return (fragment count, damage per fragment) for a weapon's projectile."""

        projectile = self.get(projectile_id)
        if projectile is None or projectile.fragment_count is None:
            return None, None
        fragment = self.get(projectile.fragment_id)
        fragment_damage = fragment.damage if fragment is not None else None
        return projectile.fragment_count, fragment_damage

    def load_directory(self, directory: Path, logger: Optional[ChannelLogger] = None) -> None:
        if not directory.exists():
            return
        paths = sorted(p for p in directory.rglob(f"*{PROJECTILE_SUFFIX}") if p.is_file())
        for path in paths[:MAX_BLUEPRINT_FILES]:
            try:
                if path.stat().st_size > MAX_BLUEPRINT_FILE_BYTES:
                    continue
                root = parse_blueprint(path.read_text(encoding="utf-8", errors="replace"))
            except (OSError, ParseError) as exc:
                if logger:
                    logger.warning("Skipping projectile %s: %s", path, exc)
                continue
            data = projectile_from_table(root) if isinstance(root, LuaTable) else None
            self.add(projectile_key_from_path(path), data or ProjectileData())
        if logger:
            logger.info("Loaded %d projectile blueprint(s) from %s", len(self), directory)


__all__ = [
    "ProjectileData",
    "ProjectileDatabase",
    "normalize_projectile_path",
    "projectile_key_from_path",
    "projectile_from_table",
]
