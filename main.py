"""Entry point for the simlint blueprint analyzer."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from simlint.assets.content import load_declared_dps, scan_units
from simlint.assets.gamedata import extract_gamedata, resolve_gamedata_path
from simlint.engine.config import ScanConfig, SimlintError
from simlint.engine.logger import ScanLogger, init_logger
from simlint.report.diff import diff_scans, write_diff_json
from simlint.report.writer import render_unit_text, write_html_report, write_json_report
from simlint.store.scans import ScanStore
from simlint.units.summary import UnitSummary

SETTINGS_PATH = Path("settings.json")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simlint",
        description="Static analysis of unit weapon blueprints: effective DPS and cadence anomalies.",
    )
    parser.add_argument("--settings", type=Path, default=SETTINGS_PATH, help="JSON settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable every log channel")
    sub = parser.add_subparsers(dest="command", required=True)

    tuning = argparse.ArgumentParser(add_help=False)
    tuning.add_argument("--simulation-seconds", type=float, default=None)
    tuning.add_argument("--cadence-gap-tolerance", type=float, default=None)
    tuning.add_argument("--workers", type=int, default=None)

    extract = sub.add_parser("extract", help="copy *_unit.bp files out of a gamedata folder or archive")
    extract.add_argument("--gamedata", type=Path, required=True)
    extract.add_argument("--out", type=Path, default=Path("data/units"))

    scan = sub.add_parser("scan", parents=[tuning], help="analyze every unit blueprint under a data directory")
    scan.add_argument("--data-dir", type=Path, required=True)
    scan.add_argument("--out", type=Path, default=Path("out"))
    scan.add_argument("--declared-dps", type=Path, default=None)

    unit = sub.add_parser("unit", parents=[tuning], help="show one unit by id or display name")
    unit.add_argument("query")
    source = unit.add_mutually_exclusive_group(required=True)
    source.add_argument("--db", type=Path, help="scan.sqlite written by 'scan'")
    source.add_argument("--data-dir", type=Path, help="scan this directory instead of reading a store")
    unit.add_argument("--json", dest="as_json", action="store_true", help="print the unit as JSON")

    diff = sub.add_parser("diff", help="compare the latest scans of two stores")
    diff.add_argument("before", type=Path)
    diff.add_argument("after", type=Path)
    diff.add_argument("--json", dest="as_json", action="store_true", help="print the diff as JSON")
    diff.add_argument("--out", type=Path, default=None, help="also write diff.json into this directory")
    return parser


def scan_config(args: argparse.Namespace) -> ScanConfig:
    base = ScanConfig.from_settings(args.settings)
    try:
        return ScanConfig(
            simulation_seconds=(
                args.simulation_seconds if args.simulation_seconds is not None else base.simulation_seconds
            ),
            cadence_gap_tolerance_secs=(
                args.cadence_gap_tolerance
                if args.cadence_gap_tolerance is not None
                else base.cadence_gap_tolerance_secs
            ),
            workers=args.workers if args.workers is not None else base.workers,
        )
    except ValueError as exc:
        raise SimlintError(str(exc)) from exc


def run_extract(args: argparse.Namespace, logger: ScanLogger) -> int:
    source = resolve_gamedata_path(args.gamedata)
    count = extract_gamedata(source, args.out, logger=logger.channel("scan"))
    print(f"Extracted {count} unit blueprint(s) to {args.out}")
    return 0


def run_scan(args: argparse.Namespace, logger: ScanLogger) -> int:
    config = scan_config(args)
    declared = load_declared_dps(args.declared_dps) if args.declared_dps else None
    report = scan_units(args.data_dir, config, declared, logger=logger)

    args.out.mkdir(parents=True, exist_ok=True)
    with ScanStore(args.out / ScanStore.DB_FILENAME, logger.channel("store")) as store:
        scan_id = store.insert_scan(str(args.data_dir), report.units)
    write_json_report(report.units, args.out / "report.json")
    write_html_report(report.units, args.out / "html")

    anomalies = sum(len(unit.anomalies) for unit in report.units)
    print(
        f"Scan {scan_id}: {len(report.units)} unit(s), {anomalies} anomaly(ies), "
        f"{len(report.skipped)} skipped. Reports in {args.out}"
    )
    return 0


def _find_unit(units: Sequence[UnitSummary], query: str) -> Optional[UnitSummary]:
    return next((unit for unit in units if unit.unit_id.matches(query)), None)


def run_unit(args: argparse.Namespace, logger: ScanLogger) -> int:
    units: List[UnitSummary]
    if args.db is not None:
        if not args.db.exists():
            raise SimlintError(f"scan store not found: {args.db}")
        with ScanStore(args.db, logger.channel("store")) as store:
            units = store.get_scan_units(store.latest_scan_id())
    else:
        units = scan_units(args.data_dir, scan_config(args), logger=logger).units
    unit = _find_unit(units, args.query)
    if unit is None:
        raise SimlintError(f"unit not found: {args.query}")
    print(json.dumps(unit.to_dict(), indent=2) if args.as_json else render_unit_text(unit))
    return 0


def _latest_units(path: Path, logger: ScanLogger) -> List[UnitSummary]:
    if not path.exists():
        raise SimlintError(f"scan store not found: {path}")
    with ScanStore(path, logger.channel("store")) as store:
        return store.get_scan_units(store.latest_scan_id())


def run_diff(args: argparse.Namespace, logger: ScanLogger) -> int:
    result = diff_scans(_latest_units(args.before, logger), _latest_units(args.after, logger))
    if args.out is not None:
        path = write_diff_json(result, str(args.before), str(args.after), args.out)
        logger.channel("store").info("Wrote %s", path)
    if args.as_json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0
    print(f"Diff: {args.before} vs {args.after}")
    print(f"Units added: {len(result.added)}")
    for unit_id in result.added:
        print(f"  + {unit_id}")
    print(f"Units removed: {len(result.removed)}")
    for unit_id in result.removed:
        print(f"  - {unit_id}")
    print(f"Common units: {len(result.common)}")
    print(f"DPS regressions: {len(result.regressions)}")
    for entry in result.regressions:
        print(f"  {entry.unit_id}: {entry.dps_before:.2f} -> {entry.dps_after:.2f}")
    return 0


COMMANDS = {
    "extract": run_extract,
    "scan": run_scan,
    "unit": run_unit,
    "diff": run_diff,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = init_logger(args.settings, verbose=args.verbose)
    try:
        return COMMANDS[args.command](args, logger)
    except SimlintError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
