from __future__ import annotations

import math
from collections import Counter
from typing import Iterable

from config import RiskThresholds
from services.district_resolver import DEFAULT_COORDINATES, CanonicalDistrict, DistrictResolver
from services.locations import disease_meta, humanize_disease_key
from services.record_store import EventRecord


# Quick advisory strings supervisors read on the heatmap panel.
RISK_NOTE_TEMPLATES = {
    "critical": "Deploy surge team for {disease}",
    "observe": "{disease} monitoring active",
    "stable": "Clinics reporting on schedule",
}


def percent_delta(current: int, previous: int) -> int:
    if previous == 0:
        return 100 if current > 0 else 0
    # half-up rounding, so -12.5 -> -12 and 12.5 -> 13
    return int(math.floor((current - previous) / previous * 100 + 0.5))


def derive_risk_status(active_cases: int, pct: int, thresholds: RiskThresholds | None = None) -> str:
    t = thresholds or RiskThresholds()
    if active_cases >= t.critical_cases or pct >= t.critical_percent:
        return "critical"
    if active_cases >= t.observe_cases or pct >= t.observe_percent:
        return "observe"
    return "stable"


def build_risk_note(status: str, disease_key: str | None) -> str:
    disease = humanize_disease_key(disease_key or "health")
    template = RISK_NOTE_TEMPLATES.get(status, RISK_NOTE_TEMPLATES["stable"])
    return template.format(disease=disease)


def _top_disease_key(counts: Counter[str]) -> str:
    # first-seen key wins ties (Counter keeps insertion order)
    best, best_n = "health", 0
    for key, n in counts.items():
        if n > best_n:
            best, best_n = key, n
    return best


def build_risk_profile(
    current: Iterable[EventRecord],
    previous: Iterable[EventRecord],
    resolver: DistrictResolver,
    thresholds: RiskThresholds | None = None,
) -> list[dict]:
    """
    Statewide heatmap payload. Every canonical district is seeded at zero so a quiet
    district still shows up as a stable marker.
    """
    previous_counts: Counter[str] = Counter(resolver.resolve(r.district).slug for r in previous)

    identities: dict[str, CanonicalDistrict] = {d.slug: d for d in resolver.districts}
    active: Counter[str] = Counter()
    diseases: dict[str, Counter[str]] = {}
    subjects: dict[str, set[str]] = {}

    for r in current:
        meta = resolver.resolve(r.district)
        identities.setdefault(meta.slug, meta)
        active[meta.slug] += 1
        diseases.setdefault(meta.slug, Counter())[disease_meta(r).key] += 1
        if r.subject_id:
            subjects.setdefault(meta.slug, set()).add(str(r.subject_id))

    rows = []
    for slug, identity in identities.items():
        cases = active.get(slug, 0)
        pct = percent_delta(cases, previous_counts.get(slug, 0))
        top_key = _top_disease_key(diseases.get(slug, Counter()))
        risk = derive_risk_status(cases, pct, thresholds)
        rows.append(
            {
                "name": identity.name,
                "slug": slug,
                "migrants": len(subjects.get(slug, ())),
                "activeCases": cases,
                "risk": risk,
                "topDisease": humanize_disease_key(top_key),
                "topDiseaseKey": top_key,
                "changePercent": pct,
                "riskNote": build_risk_note(risk, top_key),
                "trend": f"{'+' if pct >= 0 else ''}{pct}% vs last period",
                "coordinates": list(identity.coordinates or DEFAULT_COORDINATES),
            }
        )
    rows.sort(key=lambda r: -r["activeCases"])
    return rows
