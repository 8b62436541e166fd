from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import NOW, make_record
from main import app
from routes.disease import get_service
from services.disease_analytics_service import DiseaseAnalyticsService
from services.district_resolver import DistrictResolver
from services.record_store import InMemoryRecordStore


class _DownStore(InMemoryRecordStore):
    def fetch(self, window, *, timeout_s):
        raise ConnectionError("refused")


class _HungStore(InMemoryRecordStore):
    def fetch(self, window, *, timeout_s):
        raise TimeoutError()


def _use_store(store) -> None:
    resolver = DistrictResolver()
    app.dependency_overrides[get_service] = lambda: DiseaseAnalyticsService(store, resolver=resolver, clock=lambda: NOW)


@pytest.fixture
def client():
    _use_store(
        InMemoryRecordStore(
            [
                make_record(subject_id="1", district="Ernakulam", taluk="Kochi", days_ago=1, contagious=True),
                make_record(subject_id="2", district="Thrissur", taluk="Chavakkad", days_ago=2, confirmed="Malaria"),
                make_record(subject_id="3", district="Ernakulam", taluk="Aluva", days_ago=9),
            ]
        )
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_districts(client):
    res = client.get("/api/disease/districts", params={"rangeDays": 7})
    assert res.status_code == 200
    assert [d["district"] for d in res.json()["districts"]] == ["Ernakulam", "Thrissur"]


def test_garbage_params_are_clamped_not_rejected(client):
    res = client.get("/api/disease/districts", params={"rangeDays": "abc", "offsetDays": "-10"})
    assert res.status_code == 200
    assert sum(d["totalCases"] for d in res.json()["districts"]) == 3


def test_taluk_drilldown(client):
    res = client.get("/api/disease/districts/ernakulam/taluks", params={"rangeDays": 7})
    assert res.status_code == 200
    assert res.json()["district"]["taluks"][0]["name"] == "Kochi"


def test_taluk_drilldown_requires_district(client):
    res = client.get("/api/disease/districts/%20/taluks")
    assert res.status_code == 400


def test_summary(client):
    res = client.get("/api/disease/summary", params={"district": "ernakulam", "rangeDays": 7, "casesRangeDays": 7})
    body = res.json()
    assert res.status_code == 200
    assert len(body["trendData"]) == 7
    assert body["trendKeys"] == [{"key": "dengue", "label": "Dengue"}]


def test_active_cases(client):
    body = client.get("/api/disease/active-cases", params={"rangeDays": 7}).json()
    assert {c["district"] for c in body["cases"]} == {"Ernakulam", "Thrissur"}
    assert len(body["latestAdmissions"]) == 2


def test_timeline(client):
    body = client.get("/api/disease/timeline", params={"range": "7d"}).json()
    assert body["casesDelta"] == "+1"
    assert body["coverage"] == "67%"


def test_risk_map(client):
    body = client.get("/api/disease/risk-map", params={"rangeDays": 7}).json()
    assert len(body["districts"]) == 14
    assert body["districts"][0]["coordinates"] == [76.2673, 9.9312]


def test_alerts(client):
    body = client.get("/api/dashboard/alerts", params={"district": "ernakulam"}).json()
    assert [a["severity"] for a in body["alerts"]] == ["high"]


def test_upstream_failure_maps_to_503():
    _use_store(_DownStore())
    try:
        res = TestClient(app).get("/api/disease/risk-map")
    finally:
        app.dependency_overrides.clear()
    assert res.status_code == 503
    assert res.json() == {"message": "Record store unavailable", "view": "risk_map"}


def test_upstream_timeout_maps_to_504():
    _use_store(_HungStore())
    try:
        res = TestClient(app).get("/api/dashboard/alerts")
    finally:
        app.dependency_overrides.clear()
    assert res.status_code == 504
    assert res.json()["view"] == "outbreak_alerts"


def test_dashboard_summary(client):
    body = client.get("/api/dashboard/summary").json()
    stats = {s["label"]: s for s in body["stats"]}
    assert stats["Total Migrants Registered"]["value"] == "3"
    assert stats["Active Disease Cases"]["value"] == "2"
    assert stats["Active Disease Cases"]["trend"] == "+100%"
    scoped = client.get("/api/dashboard/summary", params={"district": "ernakulam"}).json()
    assert {s["label"]: s["trend"] for s in scoped["stats"]}["Active Disease Cases"] == "+0%"


def test_risk_snapshot(client):
    body = client.get("/api/dashboard/risk-snapshot").json()
    assert [r["district"] for r in body["districts"]] == ["Ernakulam", "Thrissur"]
    assert body["districts"][1]["indicator"] == "Malaria monitoring"


def test_risk_snapshot_failure_is_tagged():
    _use_store(_DownStore())
    try:
        res = TestClient(app).get("/api/dashboard/risk-snapshot")
    finally:
        app.dependency_overrides.clear()
    assert res.status_code == 503
    assert res.json()["view"] == "risk_snapshot"
