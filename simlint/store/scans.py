"""SQLite-backed scan history."""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from simlint.engine.config import SimlintError
from simlint.engine.logger import ChannelLogger
from simlint.units.summary import UnitSummary

_SCHEMA = """
CREATE TABLE IF NOT EXISTS scans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    data_dir TEXT NOT NULL,
    created_at TEXT NOT NULL,
    summary_json TEXT
);

CREATE TABLE IF NOT EXISTS scan_units (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scan_id INTEGER NOT NULL REFERENCES scans(id),
    unit_id TEXT NOT NULL,
    blueprint_path TEXT NOT NULL,
    summary_json TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_scan_units_scan ON scan_units(scan_id);
"""


class ScanStore:
    """Stores one row per scan and one JSON document per scanned blueprint.

    Unit ids are not unique within a scan: two files may declare the same
    id and both are kept, in insertion order.
    """

    DB_FILENAME = "scan.sqlite"

    def __init__(self, path: Path, logger: Optional[ChannelLogger] = None) -> None:
        self._path = path
        self._logger = logger
        try:
            self._conn = sqlite3.connect(str(path))
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise SimlintError(f"cannot open scan store {path}: {exc}") from exc

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "ScanStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def insert_scan(self, data_dir: str, units: Sequence[UnitSummary]) -> int:
        created = datetime.now(timezone.utc).isoformat()
        summary = json.dumps(
            {
                "units": len(units),
                "anomalies": sum(len(unit.anomalies) for unit in units),
            }
        )
        try:
            with self._conn:
                cursor = self._conn.execute(
                    "INSERT INTO scans (data_dir, created_at, summary_json) VALUES (?, ?, ?)",
                    (data_dir, created, summary),
                )
                scan_id = cursor.lastrowid
                self._conn.executemany(
                    "INSERT INTO scan_units (scan_id, unit_id, blueprint_path, summary_json) VALUES (?, ?, ?, ?)",
                    [
                        (scan_id, unit.unit_id.id, unit.blueprint_path, json.dumps(unit.to_dict()))
                        for unit in units
                    ],
                )
        except sqlite3.Error as exc:
            raise SimlintError(f"cannot store scan in {self._path}: {exc}") from exc
        if self._logger:
            self._logger.info("Stored scan %d with %d unit(s)", scan_id, len(units))
        return scan_id

    def list_scans(self) -> List[Tuple[int, str, str]]:
        rows = self._conn.execute(
            "SELECT id, data_dir, created_at FROM scans ORDER BY id DESC"
        ).fetchall()
        return [(int(row[0]), str(row[1]), str(row[2])) for row in rows]

    def latest_scan_id(self) -> int:
        scans = self.list_scans()
        if not scans:
            raise SimlintError(f"no scans stored in {self._path}")
        return scans[0][0]

    def get_scan_units(self, scan_id: int) -> List[UnitSummary]:
        rows = self._conn.execute(
            "SELECT summary_json FROM scan_units WHERE scan_id = ? ORDER BY unit_id, id",
            (scan_id,),
        ).fetchall()
        return [UnitSummary.from_dict(json.loads(row[0])) for row in rows]


__all__ = ["ScanStore"]
