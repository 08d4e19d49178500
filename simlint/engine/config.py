"""Scan configuration, limits, and settings loading."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

MAX_BLUEPRINT_FILES = 50_000
MAX_BLUEPRINT_FILE_BYTES = 2 * 1024 * 1024
MAX_EXTRACT_FILES = 10_000
MAX_TABLE_DEPTH = 128

DEFAULT_SIMULATION_SECONDS = 30.0
DEFAULT_CADENCE_GAP_TOLERANCE_SECS = 0.05

SCHEDULE_TIME_EPS = 0.001
MAX_SCHEDULE_EVENTS = 200_000


class SimlintError(Exception):
    """Raised by scan collaborators for user-facing failures."""


def read_settings(settings_path: Path) -> Dict[str, Any]:
    """Load settings.json as a dict; missing or malformed files read as empty."""

    if not settings_path.exists():
        return {}
    try:
        data = json.loads(settings_path.read_text())
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


@dataclass(frozen=True)
class ScanConfig:
    """Numeric knobs consumed by the analysis core."""

    simulation_seconds: float = DEFAULT_SIMULATION_SECONDS
    cadence_gap_tolerance_secs: float = DEFAULT_CADENCE_GAP_TOLERANCE_SECS
    workers: int = 1

    def __post_init__(self) -> None:
        if not self.simulation_seconds > 0.0:
            raise ValueError(f"simulation window must be positive, got {self.simulation_seconds}")
        if not self.cadence_gap_tolerance_secs >= 0.0:
            raise ValueError(
                f"gap tolerance must be non-negative, got {self.cadence_gap_tolerance_secs}"
            )
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")

    @classmethod
    def from_settings(cls, settings_path: Path) -> "ScanConfig":
        data = read_settings(settings_path)
        try:
            return cls(
                simulation_seconds=float(data.get("simulationSeconds", DEFAULT_SIMULATION_SECONDS)),
                cadence_gap_tolerance_secs=float(
                    data.get("cadenceGapTolerance", DEFAULT_CADENCE_GAP_TOLERANCE_SECS)
                ),
                workers=int(data.get("workers", 1)),
            )
        except (TypeError, ValueError):
            return cls()


__all__ = [
    "ScanConfig",
    "SimlintError",
    "read_settings",
    "MAX_BLUEPRINT_FILES",
    "MAX_BLUEPRINT_FILE_BYTES",
    "MAX_EXTRACT_FILES",
    "MAX_TABLE_DEPTH",
    "DEFAULT_SIMULATION_SECONDS",
    "DEFAULT_CADENCE_GAP_TOLERANCE_SECS",
    "SCHEDULE_TIME_EPS",
    "MAX_SCHEDULE_EVENTS",
]
