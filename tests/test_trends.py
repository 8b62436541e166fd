from __future__ import annotations

import datetime as dt

from conftest import NOW, make_record
from services.trends import build_district_cases, build_trend_data, label_trend_keys, series_key


def test_every_day_of_the_range_has_a_bucket():
    records = [
        make_record(subject_id="1", confirmed="Dengue", days_ago=0),
        make_record(subject_id="2", confirmed="Dengue", days_ago=14),
    ]
    out = build_trend_data(records, "ernakulam", 15, now=NOW)
    series = out["trendData"]
    assert len(series) == 15
    assert series[0]["date"] == "2026-10-04"
    assert series[0]["day"] == "Oct 4"
    assert series[-1]["day"] == "Oct 18"
    assert series[0]["dengue"] == 1
    assert series[-1]["dengue"] == 1
    assert all(bucket["dengue"] == 0 for bucket in series[1:-1])


def test_only_top_two_diseases_become_series():
    records = (
        [make_record(subject_id=f"d{i}", confirmed="Dengue", days_ago=1) for i in range(3)]
        + [make_record(subject_id=f"m{i}", confirmed="Malaria", days_ago=2) for i in range(2)]
        + [make_record(subject_id="t", confirmed="Typhoid", days_ago=3)]
    )
    out = build_trend_data(records, None, 7, now=NOW)
    assert out["trendKeys"] == ["dengue", "malaria"]
    for bucket in out["trendData"]:
        assert "dengue" in bucket and "malaria" in bucket


def test_trend_respects_district_and_window():
    records = [
        make_record(subject_id="1", district="Thrissur", confirmed="Dengue", days_ago=1),
        make_record(subject_id="2", district="Ernakulam", confirmed="Malaria", days_ago=1),
        make_record(subject_id="3", district="Ernakulam", confirmed="Malaria", days_ago=20),
    ]
    out = build_trend_data(records, "ernakulam", 7, now=NOW)
    assert out["trendKeys"] == ["malaria"]
    assert sum(b["malaria"] for b in out["trendData"]) == 1


def test_empty_input_still_seeds_days():
    out = build_trend_data([], None, 3, now=NOW)
    assert [b["date"] for b in out["trendData"]] == ["2026-10-16", "2026-10-17", "2026-10-18"]
    assert out["trendKeys"] == []


def test_district_cases_bar_chart():
    records = [
        make_record(subject_id="1", district="Ernakulam", confirmed="Dengue"),
        make_record(subject_id="2", district="Ernakulam", confirmed="Dengue"),
        make_record(subject_id="3", district="Ernakulam", confirmed="Malaria"),
        make_record(subject_id="4", district="Kollam", confirmed="Typhoid"),
        make_record(subject_id="5", district="Kollam", confirmed="Cholera"),
        make_record(subject_id="6", district="Kollam", confirmed="Mumps"),
        make_record(subject_id="7", district="Kollam", confirmed="viral fever"),
    ]
    out = build_district_cases(records)
    assert [row["district"] for row in out["districtCases"]] == ["Kollam", "Ernakulam"]
    keys = [k["key"] for k in out["diseaseKeys"]]
    assert len(keys) == 4
    assert keys[:2] == ["dengue", "malaria"]
    ernakulam = out["districtCases"][1]
    assert ernakulam["totalCases"] == 3
    assert ernakulam["dengue"] == 2
    for row in out["districtCases"]:
        assert set(keys) <= set(row)


def test_label_trend_keys():
    assert label_trend_keys(["viralFever"]) == [{"key": "viralFever", "label": "Viral Fever"}]
    assert label_trend_keys([]) == []


def test_day_label_has_no_zero_padding():
    out = build_trend_data([], None, 1, now=dt.datetime(2026, 3, 5, 8, 0))
    assert out["trendData"][0]["day"] == "Mar 5"


def test_disease_named_like_a_row_field_does_not_clobber_it():
    out = build_trend_data([make_record(confirmed="Date", days_ago=1), make_record(confirmed="Day", days_ago=1)], None, 7, now=NOW)
    assert sorted(out["trendKeys"]) == ["diseaseDate", "diseaseDay"]
    bucket = out["trendData"][-2]
    assert bucket["date"] == "2026-10-17"
    assert bucket["day"] == "Oct 17"
    assert bucket["diseaseDate"] == 1
    assert bucket["diseaseDay"] == 1
    assert label_trend_keys(["diseaseDate", "diseaseTotalCases"]) == [
        {"key": "diseaseDate", "label": "Date"},
        {"key": "diseaseTotalCases", "label": "Total Cases"},
    ]


def test_total_cases_disease_keeps_district_total():
    records = [make_record(subject_id=str(i), confirmed="Total Cases") for i in range(3)]
    records.append(make_record(subject_id="d", confirmed="Dengue"))
    out = build_district_cases(records)
    row = out["districtCases"][0]
    assert row["totalCases"] == 4
    assert row["district"] == "Ernakulam"
    assert row["diseaseTotalCases"] == 3
    assert out["diseaseKeys"][0] == {"key": "diseaseTotalCases", "label": "Total Cases"}


def test_series_key_only_prefixes_row_fields():
    assert series_key("dengue") == "dengue"
    assert series_key("district") == "diseaseDistrict"
    assert label_trend_keys(["diseaseX"]) == [{"key": "diseaseX", "label": "Disease X"}]
