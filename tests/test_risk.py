from __future__ import annotations

import pytest

from config import RiskThresholds
from conftest import make_record
from services.risk import build_risk_note, build_risk_profile, derive_risk_status, percent_delta


@pytest.mark.parametrize(
    "current,previous,expected",
    [
        (0, 0, 0),
        (5, 0, 100),
        (10, 10, 0),
        (15, 10, 50),
        (7, 8, -12),  # -12.5 rounds half up
        (9, 8, 13),  # 12.5 rounds half up
        (0, 4, -100),
    ],
)
def test_percent_delta(current, previous, expected):
    assert percent_delta(current, previous) == expected


@pytest.mark.parametrize(
    "active,pct,expected",
    [
        (60, 0, "critical"),
        (0, 30, "critical"),
        (59, 29, "observe"),
        (25, 0, "observe"),
        (0, 10, "observe"),
        (24, 9, "stable"),
        (0, -50, "stable"),
    ],
)
def test_risk_status_thresholds(active, pct, expected):
    assert derive_risk_status(active, pct, RiskThresholds()) == expected


def test_risk_notes():
    assert build_risk_note("critical", "dengue") == "Deploy surge team for Dengue"
    assert build_risk_note("observe", "viralFever") == "Viral Fever monitoring active"
    assert build_risk_note("stable", None) == "Clinics reporting on schedule"


def test_every_canonical_district_is_present_even_when_quiet(resolver):
    rows = build_risk_profile([], [], resolver)
    assert len(rows) == 14
    wayanad = next(r for r in rows if r["slug"] == "wayanad")
    assert wayanad["activeCases"] == 0
    assert wayanad["risk"] == "stable"
    assert wayanad["changePercent"] == 0
    assert wayanad["trend"] == "+0% vs last period"
    assert wayanad["topDisease"] == "Health"
    assert wayanad["coordinates"] == [76.132, 11.6854]


def test_fuzzy_labels_fold_into_canonical_district(resolver):
    current = [
        make_record(subject_id="1", district="Thiruvanathapuram", confirmed="Dengue"),
        make_record(subject_id="2", district="thiruvananthapuram", confirmed="Dengue"),
        make_record(subject_id="2", district="THIRUVANANTHAPURAM ", confirmed="Malaria"),
    ]
    previous = [make_record(subject_id="3", district="Thiruvananthapuram", days_ago=10)]
    rows = build_risk_profile(current, previous, resolver)
    assert len(rows) == 14
    top = rows[0]
    assert top["slug"] == "thiruvananthapuram"
    assert top["activeCases"] == 3
    assert top["migrants"] == 2
    assert top["topDiseaseKey"] == "dengue"
    assert top["changePercent"] == 200
    assert top["risk"] == "critical"
    assert top["riskNote"] == "Deploy surge team for Dengue"
    assert top["trend"] == "+200% vs last period"


def test_unknown_district_gets_its_own_entry_with_default_coordinates(resolver):
    rows = build_risk_profile([make_record(district="Bangalore Urban")], [], resolver)
    assert len(rows) == 15
    extra = rows[0]
    assert extra["name"] == "Bangalore Urban"
    assert extra["coordinates"] == [76.5, 10.2]


def test_sorted_by_active_cases_descending(resolver):
    current = [make_record(subject_id=str(i), district="Kollam") for i in range(3)] + [
        make_record(subject_id="x", district="Kannur")
    ]
    rows = build_risk_profile(current, [], resolver)
    assert [r["slug"] for r in rows[:2]] == ["kollam", "kannur"]
    counts = [r["activeCases"] for r in rows]
    assert counts == sorted(counts, reverse=True)


def test_negative_change_trend_label(resolver):
    previous = [make_record(subject_id=str(i), district="Idukki", days_ago=10) for i in range(4)]
    current = [make_record(subject_id="a", district="Idukki")]
    row = next(r for r in build_risk_profile(current, previous, resolver) if r["slug"] == "idukki")
    assert row["changePercent"] == -75
    assert row["trend"] == "-75% vs last period"
    assert row["risk"] == "stable"
