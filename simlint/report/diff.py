"""Compare two scans: added/removed units and effective DPS regressions."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from simlint.units.summary import UnitSummary

REGRESSION_RATIO = 0.95
DIFF_FILENAME = "diff.json"


@dataclass(frozen=True)
class DpsRegression:
    unit_id: str
    dps_before: float
    dps_after: float


@dataclass
class ScanDiff:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    common: List[str] = field(default_factory=list)
    regressions: List[DpsRegression] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unitsAdded": self.added,
            "unitsRemoved": self.removed,
            "commonUnits": len(self.common),
            "regressions": [
                {"unit": entry.unit_id, "dpsBefore": entry.dps_before, "dpsAfter": entry.dps_after}
                for entry in self.regressions
            ],
        }


def diff_scans(before: Sequence[UnitSummary], after: Sequence[UnitSummary]) -> ScanDiff:
    old = {unit.unit_id.id: unit for unit in before}
    new = {unit.unit_id.id: unit for unit in after}
    diff = ScanDiff(
        added=sorted(set(new) - set(old)),
        removed=sorted(set(old) - set(new)),
        common=sorted(set(old) & set(new)),
    )
    for unit_id in diff.common:
        dps_before = old[unit_id].total_effective_dps
        dps_after = new[unit_id].total_effective_dps
        if dps_after < dps_before * REGRESSION_RATIO:
            diff.regressions.append(DpsRegression(unit_id, dps_before, dps_after))
    return diff


def write_diff_json(result: ScanDiff, before: str, after: str, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / DIFF_FILENAME
    document = {"scanBefore": before, "scanAfter": after, **result.to_dict()}
    path.write_text(json.dumps(document, indent=2))
    return path


__all__ = ["DIFF_FILENAME", "DpsRegression", "ScanDiff", "diff_scans", "write_diff_json"]
