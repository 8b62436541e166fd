from __future__ import annotations

import datetime as dt
import itertools
import sys
from pathlib import Path

import pytest

BACKEND = Path(__file__).resolve().parent.parent / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from services.district_resolver import DistrictResolver, MatcherCache  # noqa: E402
from services.record_store import EventRecord  # noqa: E402

NOW = dt.datetime(2026, 10, 18, 12, 0, 0)

_ids = itertools.count(1)


def make_record(
    *,
    subject_id: str | None = "P-1",
    district: str | None = "Ernakulam",
    taluk: str | None = "Kochi",
    village: str | None = "Edappally",
    days_ago: float | None = 0,
    issued: dt.datetime | None = None,
    confirmed: str | None = None,
    suspected: str | None = "Dengue",
    contagious: bool = False,
    follow_up_hours: float | None = None,
    **extra,
) -> EventRecord:
    if issued is None and days_ago is not None:
        issued = NOW - dt.timedelta(days=days_ago)
    follow_up = issued + dt.timedelta(hours=follow_up_hours) if issued and follow_up_hours is not None else None
    return EventRecord(
        record_id=str(extra.pop("record_id", next(_ids))),
        subject_id=subject_id,
        subject_name=extra.pop("subject_name", f"Subject {subject_id}"),
        district=district,
        taluk=taluk,
        village=village,
        date_of_issue=issued,
        contagious=contagious,
        confirmed_disease=confirmed,
        suspected_disease=suspected,
        follow_up_date=follow_up,
        **extra,
    )


@pytest.fixture
def now() -> dt.datetime:
    return NOW


@pytest.fixture
def record():
    return make_record


@pytest.fixture
def resolver() -> DistrictResolver:
    return DistrictResolver(cache=MatcherCache(150))
