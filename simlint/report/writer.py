"""JSON, static HTML and terminal reports for scanned units."""
from __future__ import annotations

import json
from html import escape
from pathlib import Path
from typing import List, Sequence

from simlint.units.summary import UnitSummary, normalize_id

_STYLE = (
    "body{font-family:system-ui,sans-serif;margin:1rem;} "
    "table{border-collapse:collapse;} th,td{border:1px solid #ccc;padding:6px;} a{color:#06c;}"
)
_ANOMALY_STYLE = (
    "body{font-family:system-ui,sans-serif;margin:1rem;} .info{color:#666;} .warn{color:#c60;} "
    ".crit{color:#c00;} .info,.warn,.crit{margin:8px 0;padding:6px;border-left:4px solid;}"
)
_SEARCH_SCRIPT = """<script>
document.getElementById('search').oninput=function(){
 var q=this.value.toLowerCase(), rows=document.querySelectorAll('tbody tr');
 rows.forEach(function(r){
   r.style.display=r.textContent.toLowerCase().indexOf(q)===-1?'none':'';
 });
};
</script>"""


def unit_page_name(unit: UnitSummary) -> str:
    return f"unit_{normalize_id(unit.unit_id.id).replace(' ', '_').replace('/', '_')}.html"


def _page(title: str, style: str, body: str) -> str:
    return (
        '<!DOCTYPE html>\n<html lang="en">\n'
        f'<head><meta charset="utf-8"><title>{escape(title)}</title><style>{style}</style></head>\n'
        f"<body>\n{body}\n</body>\n</html>\n"
    )


def write_json_report(units: Sequence[UnitSummary], path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps([unit.to_dict() for unit in units], indent=2))


def render_index(units: Sequence[UnitSummary]) -> str:
    rows = "".join(
        f'<tr><td><a href="{escape(unit_page_name(unit))}">{escape(unit.unit_id.label)}</a></td>'
        f"<td>{len(unit.weapons)}</td><td>{len(unit.anomalies)}</td></tr>"
        for unit in units
    )
    body = (
        "<h1>Unit Weapon Behavior Report</h1>\n"
        '<p>Unit list. <a href="anomalies.html">Anomalies</a></p>\n'
        '<input type="text" id="search" placeholder="Search unit ID or name" style="margin-bottom:8px;">\n'
        "<table><thead><tr><th>Unit</th><th>Weapons</th><th>Anomalies</th></tr></thead>\n"
        f"<tbody>{rows}</tbody>\n</table>\n{_SEARCH_SCRIPT}"
    )
    return _page("Simlint - Units", _STYLE, body)


def render_anomalies(units: Sequence[UnitSummary]) -> str:
    items: List[str] = []
    for unit in units:
        for anomaly in unit.anomalies:
            items.append(
                f'<div class="{anomaly.severity.value}"><strong>'
                f"{escape(anomaly.unit_id or '')} - {escape(anomaly.code)}:</strong> "
                f"{escape(anomaly.summary)} <br><em>{escape(anomaly.technical)}</em></div>"
            )
    content = "\n".join(items) if items else "<p>No anomalies detected.</p>"
    body = f'<h1>Anomalies</h1>\n<p><a href="index.html">Back to units</a></p>\n{content}'
    return _page("Simlint - Anomalies", _ANOMALY_STYLE, body)


def render_unit(unit: UnitSummary) -> str:
    declared = "".join(
        f"<tr><td>{escape(weapon.id)}</td><td>{weapon.damage:g}</td>"
        f"<td>{weapon.projectiles_per_fire}</td><td>{weapon.rate_of_fire:g}</td></tr>"
        for weapon in unit.weapons
    )
    effective = "".join(
        f"<tr><td>{escape(weapon.weapon_id)}</td><td>{weapon.nominal_dps:.2f}</td>"
        f"<td>{weapon.effective_dps:.2f}</td><td>{weapon.cycle_time_sec:.3f}</td></tr>"
        for weapon in unit.effective
    )
    anomalies = "".join(
        f"<li><strong>{escape(anomaly.code)}:</strong> {escape(anomaly.summary)}</li>"
        for anomaly in unit.anomalies
    ) or "<li>None</li>"
    override = ""
    if unit.declared_dps_override is not None:
        override = f"<p>Declared DPS (from override): {unit.declared_dps_override:.2f}</p>\n"
    body = (
        f"<h1>{escape(unit.unit_id.label)}</h1>\n"
        '<p><a href="index.html">Back to list</a></p>\n'
        f"{override}"
        "<h2>Declared weapon stats (blueprint)</h2>\n"
        "<table><thead><tr><th>Weapon</th><th>Damage</th><th>Projectiles</th><th>ROF</th></tr></thead>"
        f"<tbody>{declared}</tbody></table>\n"
        "<h2>Effective (computed)</h2>\n"
        "<table><thead><tr><th>Weapon</th><th>Nominal DPS</th><th>Effective DPS</th><th>Cycle (s)</th></tr></thead>"
        f"<tbody>{effective}</tbody></table>\n"
        f"<h2>Anomalies</h2>\n<ul>{anomalies}</ul>"
    )
    return _page(f"{unit.unit_id.label} - Simlint", _STYLE, body)


def render_unit_text(unit: UnitSummary) -> str:
    """Terminal listing of one unit: declared stats, computed DPS, anomalies."""

    lines = [
        f"Unit: {unit.unit_id.id} ({unit.unit_id.name or '-'})",
        f"Blueprint: {unit.blueprint_path}",
    ]
    if unit.declared_dps_override is not None:
        lines.append(f"Declared DPS (override): {unit.declared_dps_override:.2f}")
    lines += ["", "Declared weapons:"]
    lines += [
        f"  {weapon.id}  damage={weapon.damage:g}  projectiles={weapon.projectiles_per_fire}"
        f"  ROF={weapon.rate_of_fire:g}  range={weapon.max_range:g}"
        for weapon in unit.weapons
    ]
    lines += ["", "Effective (computed):"]
    lines += [
        f"  {weapon.weapon_id}  nominal_dps={weapon.nominal_dps:.2f}"
        f"  effective_dps={weapon.effective_dps:.2f}  cycle_sec={weapon.cycle_time_sec:.3f}"
        for weapon in unit.effective
    ]
    lines += ["", "Anomalies:"]
    lines += [
        f"  [{anomaly.code}] {anomaly.severity.value.upper()} - {anomaly.summary}"
        for anomaly in unit.anomalies
    ] or ["  None"]
    return "\n".join(lines)


def write_html_report(units: Sequence[UnitSummary], out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    (out_dir / "index.html").write_text(render_index(units), encoding="utf-8")
    (out_dir / "anomalies.html").write_text(render_anomalies(units), encoding="utf-8")
    for unit in units:
        (out_dir / unit_page_name(unit)).write_text(render_unit(unit), encoding="utf-8")


__all__ = [
    "write_json_report",
    "write_html_report",
    "render_index",
    "render_anomalies",
    "render_unit",
    "render_unit_text",
    "unit_page_name",
]
