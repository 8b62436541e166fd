from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from config import settings
from services.locations import (
    FALLBACK_STRINGS,
    camp_name,
    disease_meta,
    location_names,
    make_slug,
    normalize_text,
    slug_to_name,
)
from services.record_store import EventRecord


def patient_detail(record: EventRecord, *, taluk: str | None = None, village: str | None = None) -> dict:
    """Compact patient row the drill-down modals consume directly."""
    _district, taluk_name, village_name = location_names(record)
    base_village = village if village is not None else village_name
    return {
        "patientId": record.subject_id,
        "name": record.subject_name or "--",
        "disease": disease_meta(record).label,
        "contagious": bool(record.contagious),
        "doctor": record.doctor_name or "--",
        "camp": camp_name(record, base_village),
        "taluk": taluk if taluk is not None else taluk_name,
        "village": base_village,
        "dateOfIssue": record.date_of_issue.isoformat() if record.date_of_issue else None,
        "notes": record.notes or "",
    }


def build_taluk_count_map(records: Iterable[EventRecord]) -> Counter[str]:
    """Snapshot `{district-slug}::{taluk-slug}` totals so the next window can be diffed against it."""
    counts: Counter[str] = Counter()
    for r in records:
        district = make_slug(normalize_text(r.district, FALLBACK_STRINGS["district"]))
        taluk = make_slug(normalize_text(r.taluk, FALLBACK_STRINGS["taluk"]))
        counts[f"{district}::{taluk}"] += 1
    return counts


def format_trend_label(delta: int) -> str:
    if delta > 0:
        return f"+{delta} vs last period"
    if delta < 0:
        return f"{delta} vs last period"
    return "Stable"


@dataclass
class _VillageNode:
    name: str
    cases: int = 0
    patients: list[dict] = field(default_factory=list)


@dataclass
class _TalukNode:
    name: str
    cases: int = 0
    villages: dict[str, _VillageNode] = field(default_factory=dict)
    patients: list[dict] = field(default_factory=list)


@dataclass
class _DistrictNode:
    name: str
    total_cases: int = 0
    taluks: dict[str, _TalukNode] = field(default_factory=dict)


class HierarchyBuilder:
    """
    Folds records into slug-keyed district nodes -> taluk -> village, then a single
    freeze() pass sorts everything and emits the response tree.
    """

    def __init__(self, *, max_taluk_patients: int | None = None, max_village_patients: int | None = None) -> None:
        self.max_taluk_patients = settings.max_taluk_patients if max_taluk_patients is None else max_taluk_patients
        self.max_village_patients = (
            settings.max_village_patients if max_village_patients is None else max_village_patients
        )
        self._districts: dict[str, _DistrictNode] = {}

    def add(self, record: EventRecord) -> None:
        district_name, taluk_name, village_name = location_names(record)

        district = self._districts.setdefault(make_slug(district_name), _DistrictNode(name=district_name))
        district.total_cases += 1

        taluk = district.taluks.setdefault(taluk_name, _TalukNode(name=taluk_name))
        taluk.cases += 1

        detail = patient_detail(record, taluk=taluk_name, village=village_name)

        village = taluk.villages.get(village_name)
        if village is None:
            village = taluk.villages[village_name] = _VillageNode(name=village_name)
        village.cases += 1
        if len(village.patients) < self.max_village_patients:
            village.patients.append(detail)

        if len(taluk.patients) < self.max_taluk_patients:
            taluk.patients.append(detail)

    def add_all(self, records: Iterable[EventRecord]) -> "HierarchyBuilder":
        for r in records:
            self.add(r)
        return self

    def freeze(self, previous_counts: Counter[str] | dict[str, int] | None = None) -> list[dict]:
        prev = previous_counts or {}
        out = []
        for district in self._districts.values():
            district_slug = make_slug(district.name)
            taluks = []
            for taluk in district.taluks.values():
                previous = int(prev.get(f"{district_slug}::{make_slug(taluk.name)}", 0))
                villages = sorted(_village_rows(taluk), key=lambda v: -v["cases"])
                taluks.append(
                    {
                        "name": taluk.name,
                        "cases": taluk.cases,
                        "trend": format_trend_label(taluk.cases - previous),
                        "villages": villages,
                        "patients": list(taluk.patients),
                    }
                )
            taluks.sort(key=lambda t: -t["cases"])
            out.append({"district": district.name, "totalCases": district.total_cases, "taluks": taluks})
        out.sort(key=lambda d: -d["totalCases"])
        return out


def _village_rows(taluk: _TalukNode) -> list[dict]:
    return [{"name": v.name, "cases": v.cases, "patients": list(v.patients)} for v in taluk.villages.values()]


def build_district_hierarchy(current: Iterable[EventRecord], previous: Iterable[EventRecord]) -> list[dict]:
    previous_counts = build_taluk_count_map(previous)
    return HierarchyBuilder().add_all(current).freeze(previous_counts)


def find_district(hierarchy: list[dict], district_slug: str) -> dict:
    for entry in hierarchy:
        if make_slug(entry["district"]) == district_slug:
            return entry
    return {"district": slug_to_name(district_slug), "totalCases": 0, "taluks": []}
