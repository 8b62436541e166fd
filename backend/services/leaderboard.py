from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Iterable

from config import StatusThresholds, settings
from services.locations import (
    FALLBACK_STRINGS,
    camp_name,
    disease_meta,
    location_names,
    make_slug,
    resolved_disease_label,
    to_title_case,
)
from services.record_store import EventRecord
from services.windows import build_window


def derive_district_status(
    total_cases: int, new_cases: int, contagious_hits: int, thresholds: StatusThresholds | None = None
) -> str:
    t = thresholds or StatusThresholds()
    if total_cases >= t.critical_total or contagious_hits >= t.critical_contagious or new_cases >= t.critical_new:
        return "critical"
    if total_cases >= t.moderate_total or new_cases >= t.moderate_new:
        return "moderate"
    return "stable"


def _iso(value: dt.datetime | None) -> str | None:
    return value.isoformat() if value else None


def build_active_cases(
    records: Iterable[EventRecord],
    district_slug: str | None = None,
    *,
    now: dt.datetime | None = None,
    thresholds: StatusThresholds | None = None,
) -> dict:
    """Leaderboard for the "Active Disease Cases" widget plus the latest admissions strip."""
    new_case_cutoff = build_window(settings.new_case_window_days, now=now).start
    districts: dict[str, dict] = {}
    admissions: list[dict] = []

    for r in records:
        district_name, taluk_name, village_name = location_names(r)
        district_key = make_slug(district_name)
        if district_slug and district_key != district_slug:
            continue
        meta = disease_meta(r)

        entry = districts.setdefault(
            district_key,
            {
                "district": district_name,
                "totalCases": 0,
                "newCases": 0,
                "contagiousHits": 0,
                "diseaseCounts": Counter(),
                "recentPatients": [],
                "lastUpdated": None,
            },
        )
        entry["totalCases"] += 1
        if r.contagious:
            entry["contagiousHits"] += 1

        issued = r.date_of_issue
        if issued is not None and (entry["lastUpdated"] is None or issued > entry["lastUpdated"]):
            entry["lastUpdated"] = issued

        if issued is not None and issued >= new_case_cutoff:
            entry["newCases"] += 1
            entry["recentPatients"].append(
                {
                    "name": r.subject_name or "--",
                    "disease": meta.label,
                    "taluk": taluk_name,
                    "village": village_name,
                    "dateOfIssue": _iso(issued),
                    "contagious": bool(r.contagious),
                }
            )
        entry["diseaseCounts"][meta.key] += 1

        admissions.append(
            {
                "name": r.subject_name or "--",
                "disease": meta.label,
                "district": district_name,
                "taluk": taluk_name,
                "village": village_name,
                "dateOfIssue": _iso(issued),
                "contagious": bool(r.contagious),
                "camp": camp_name(r, village_name),
                "_issued": issued,
            }
        )

    cases = []
    for entry in districts.values():
        top = entry["diseaseCounts"].most_common(1)
        top_key, top_count = top[0] if top else ("unspecified", 0)
        recent = sorted(entry["recentPatients"], key=lambda p: dt.datetime.fromisoformat(p["dateOfIssue"]), reverse=True)
        cases.append(
            {
                "district": entry["district"],
                "newCases": entry["newCases"],
                "totalCases": entry["totalCases"],
                "contagiousHits": entry["contagiousHits"],
                "status": derive_district_status(
                    entry["totalCases"], entry["newCases"], entry["contagiousHits"], thresholds
                ),
                "topDisease": to_title_case(top_key),
                "topDiseaseCount": top_count,
                "recentPatients": recent[: settings.max_recent_patients],
                "lastUpdated": entry["lastUpdated"],
            }
        )

    cases.sort(
        key=lambda c: (
            -(c["lastUpdated"].timestamp() if c["lastUpdated"] else 0.0),
            -c["newCases"],
            -c["totalCases"],
        )
    )
    for c in cases:
        c["lastUpdated"] = _iso(c["lastUpdated"])

    admissions.sort(key=lambda a: -(a["_issued"].timestamp() if a["_issued"] else 0.0))
    latest = [{k: v for k, v in a.items() if k != "_issued"} for a in admissions[: settings.latest_admission_limit]]

    return {"cases": cases[: settings.active_cases_limit], "latestAdmissions": latest}


# ----- Outbreak alerts feed -----

_MEDIUM_SEVERITY_TAGS = ("dengue", "malaria", "typhoid")


def derive_alert_severity(record: EventRecord) -> str:
    if record.contagious:
        return "high"
    disease = (record.confirmed_disease or record.suspected_disease or "").strip().lower()
    if any(tag in disease for tag in _MEDIUM_SEVERITY_TAGS):
        return "medium"
    return "low"


def format_relative_time(value: dt.datetime | None, *, now: dt.datetime | None = None) -> str:
    if value is None:
        return "Just now"
    diff_s = ((now or dt.datetime.now()) - value).total_seconds()
    hours = int(diff_s // 3600)
    if hours < 1:
        return f"{max(1, int(diff_s // 60))} min ago"
    if hours < 24:
        return f"{hours} hrs ago"
    days = hours // 24
    return "1 day ago" if days == 1 else f"{days} days ago"


def build_outbreak_alerts(
    records: Iterable[EventRecord], *, now: dt.datetime | None = None, limit: int | None = None
) -> list[dict]:
    cap = settings.alert_result_limit if limit is None else limit
    contagious = [r for r in records if r.contagious]
    contagious.sort(key=lambda r: -(r.date_of_issue.timestamp() if r.date_of_issue else 0.0))
    out = []
    for r in contagious[:cap]:
        _district, _taluk, village = location_names(r)
        label = resolved_disease_label(r)
        out.append(
            {
                "id": r.record_id,
                "alert": "Health Alert" if label == FALLBACK_STRINGS["disease"] else label,
                "camp": r.camp.strip() if r.camp and r.camp.strip() else f"{village} Camp",
                "severity": derive_alert_severity(r),
                "date": format_relative_time(r.date_of_issue, now=now),
            }
        )
    return out


# ----- Timeline KPIs -----


def format_cases_delta(current: int, previous: int) -> str:
    delta = current - previous
    if delta == 0:
        return "0"
    return f"+{delta}" if delta > 0 else str(delta)


def average_response(records: Iterable[EventRecord], *, now: dt.datetime | None = None) -> str:
    """Mean hours between issue and follow-up (still-open records count up to now)."""
    ref = now or dt.datetime.now()
    durations = []
    for r in records:
        if r.date_of_issue is None:
            continue
        end = r.follow_up_date or ref
        if end < r.date_of_issue:
            continue
        durations.append((end - r.date_of_issue).total_seconds() / 3600)
    if not durations:
        return "--"
    avg = sum(durations) / len(durations)
    hours = int(avg)
    minutes = round((avg - hours) * 60)
    return f"{hours}h {minutes}m"


def taluk_coverage(records: Iterable[EventRecord], all_taluks: list[str]) -> str:
    """Active (district, taluk) pairs against every taluk known to the store."""
    if not all_taluks:
        return "0%"
    active = {f"{make_slug(r.district or '')}-{make_slug(r.taluk or '')}" for r in records}
    return f"{round(len(active) / len(all_taluks) * 100)}%"
