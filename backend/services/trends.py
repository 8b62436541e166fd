from __future__ import annotations

import datetime as dt
from collections import Counter
from typing import Iterable

from config import settings
from services.locations import disease_meta, district_slug_of, humanize_disease_key, location_names
from services.record_store import EventRecord
from services.windows import build_window, iter_days


ROW_FIELDS = frozenset({"day", "date", "district", "totalCases"})
_SERIES_PREFIX = "disease"


def _day_label(d: dt.date) -> str:
    return f"{d:%b} {d.day}"


def series_key(key: str) -> str:
    """Chart column for a disease key; keys that would shadow a row field get a prefix."""
    if key in ROW_FIELDS:
        return f"{_SERIES_PREFIX}{key[:1].upper()}{key[1:]}"
    return key


def _disease_key_of(column: str) -> str:
    rest = column[len(_SERIES_PREFIX):]
    if column.startswith(_SERIES_PREFIX) and rest:
        original = rest[:1].lower() + rest[1:]
        if original in ROW_FIELDS:
            return original
    return column


def build_trend_data(
    records: Iterable[EventRecord],
    district_slug: str | None,
    range_days: int,
    *,
    now: dt.datetime | None = None,
    max_diseases: int | None = None,
) -> dict:
    """
    Per-day disease counts for the line chart. Every day of the range is pre-seeded so the
    chart never shows gaps; only the top diseases by volume are kept as series.
    """
    top_n = settings.trend_max_diseases if max_diseases is None else max_diseases
    window = build_window(range_days, now=now)
    days = iter_days(window)

    buckets: dict[dt.date, Counter[str]] = {d: Counter() for d in days}
    totals: Counter[str] = Counter()

    for r in records:
        if district_slug and district_slug_of(r) != district_slug:
            continue
        if r.date_of_issue is None:
            continue
        bucket = buckets.get(r.date_of_issue.date())
        if bucket is None:
            continue
        key = series_key(disease_meta(r).key)
        bucket[key] += 1
        totals[key] += 1

    trend_keys = [k for k, _n in totals.most_common(top_n)]
    series = []
    for d in days:
        entry = {"day": _day_label(d), "date": d.isoformat()}
        entry.update((key, buckets[d][key]) for key in trend_keys)
        series.append(entry)
    return {"trendData": series, "trendKeys": trend_keys}


def build_district_cases(records: Iterable[EventRecord], *, max_diseases: int | None = None) -> dict:
    """Per-district totals with one column per top disease (stacked bar chart)."""
    top_n = settings.bar_chart_max_diseases if max_diseases is None else max_diseases
    per_district: dict[str, dict] = {}
    totals: Counter[str] = Counter()
    labels: dict[str, str] = {}

    for r in records:
        district_name, _taluk, _village = location_names(r)
        meta = disease_meta(r)
        key = series_key(meta.key)
        entry = per_district.setdefault(district_name, {"district": district_name, "totalCases": 0, "counts": Counter()})
        entry["totalCases"] += 1
        entry["counts"][key] += 1
        totals[key] += 1
        labels.setdefault(key, meta.label)

    disease_keys = [{"key": k, "label": labels[k]} for k, _n in totals.most_common(top_n)]

    rows = []
    for entry in per_district.values():
        row = {"district": entry["district"], "totalCases": entry["totalCases"]}
        for dk in disease_keys:
            row[dk["key"]] = entry["counts"].get(dk["key"], 0)
        rows.append(row)
    rows.sort(key=lambda r: -r["totalCases"])
    return {"districtCases": rows, "diseaseKeys": disease_keys}


def label_trend_keys(keys: list[str]) -> list[dict]:
    return [{"key": k, "label": humanize_disease_key(_disease_key_of(k))} for k in keys]
