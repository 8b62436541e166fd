from __future__ import annotations

from collections import Counter
from typing import Iterable

from config import SnapshotThresholds, settings
from services.locations import FALLBACK_STRINGS, location_names, make_slug, resolved_disease_label, to_title_case
from services.record_store import EventRecord
from services.risk import percent_delta


def format_count(value: int | None) -> str:
    """Indian digit grouping: 1234567 -> '12,34,567'."""
    n = int(value or 0)
    sign = "-" if n < 0 else ""
    digits = str(abs(n))
    if len(digits) <= 3:
        return f"{sign}{digits}"
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def format_percent_change(current: int, previous: int) -> str:
    pct = percent_delta(current, previous)
    return f"+{pct}%" if pct >= 0 else f"{pct}%"


def count_high_risk_camps(records: Iterable[EventRecord]) -> int:
    """Distinct (district, village) pairs with at least one contagious record."""
    camps = set()
    for r in records:
        if not r.contagious:
            continue
        district_name, _taluk, village_name = location_names(r)
        camps.add((make_slug(district_name), make_slug(village_name)))
    return len(camps)


def _contagious_hits(records: Iterable[EventRecord]) -> int:
    return sum(1 for r in records if r.contagious)


def build_dashboard_summary(
    current: list[EventRecord], previous: list[EventRecord], registered_subjects: int
) -> dict:
    """KPI tiles for the dashboard hero grid, each trended against the previous window."""
    camps, prev_camps = count_high_risk_camps(current), count_high_risk_camps(previous)
    hits, prev_hits = _contagious_hits(current), _contagious_hits(previous)
    stats = [
        {
            "label": "Total Migrants Registered",
            "value": format_count(registered_subjects),
            "iconKey": "migrants",
            "color": "blue",
            "trend": "+0%",
        },
        {
            "label": "High-Risk Camps",
            "value": format_count(camps),
            "iconKey": "camps",
            "color": "red",
            "trend": format_percent_change(camps, prev_camps),
        },
        {
            "label": "Active Disease Cases",
            "value": format_count(len(current)),
            "iconKey": "alerts",
            "color": "orange",
            "trend": format_percent_change(len(current), len(previous)),
        },
        {
            "label": "Contagious Alerts",
            "value": format_count(hits),
            "iconKey": "contagious",
            "color": "purple",
            "trend": format_percent_change(hits, prev_hits),
        },
    ]
    return {"stats": stats}


def derive_snapshot_risk(cases: int, contagious_hits: int, thresholds: SnapshotThresholds | None = None) -> str:
    t = thresholds or SnapshotThresholds()
    if contagious_hits >= t.critical_contagious or cases >= t.critical_cases:
        return "Critical"
    return "Observe"


def _first_disease(records: list[EventRecord]) -> str:
    for r in records:
        label = resolved_disease_label(r)
        if label != FALLBACK_STRINGS["disease"]:
            return to_title_case(label)
    return "Disease"


def build_risk_rows(
    current: Iterable[EventRecord],
    previous: Iterable[EventRecord] = (),
    *,
    thresholds: SnapshotThresholds | None = None,
    limit: int | None = None,
) -> list[dict]:
    """
    Ranked hotspot rows for the rapid risk widget: busiest districts first, with a
    Critical/Observe tag, response SLA and case change vs the previous window.
    Records are expected most recent first, so the indicator names the latest disease.
    """
    t = thresholds or SnapshotThresholds()
    cap = settings.risk_rows_limit if limit is None else limit

    grouped: dict[str, dict] = {}
    for r in current:
        district_name, _taluk, _village = location_names(r)
        entry = grouped.setdefault(district_name, {"records": [], "subjects": set(), "contagious": 0})
        entry["records"].append(r)
        if r.subject_id:
            entry["subjects"].add(r.subject_id)
        if r.contagious:
            entry["contagious"] += 1

    previous_cases: Counter[str] = Counter(location_names(r)[0] for r in previous)

    ranked = sorted(grouped.items(), key=lambda kv: -len(kv[1]["records"]))
    rows = []
    for district_name, entry in ranked[: max(0, cap)]:
        cases = len(entry["records"])
        risk = derive_snapshot_risk(cases, entry["contagious"], t)
        sla_hours = t.critical_sla_hours if risk == "Critical" else t.observe_sla_hours
        rows.append(
            {
                "district": district_name,
                "migrants": format_count(len(entry["subjects"])),
                "risk": risk,
                "indicator": f"{_first_disease(entry['records'])} monitoring",
                "sla": f"{sla_hours} hrs",
                "trend": format_percent_change(cases, previous_cases.get(district_name, 0)),
            }
        )
    return rows
