from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from database import SessionLocal
from services.disease_analytics_service import DiseaseAnalyticsService
from services.record_store import RecordStore, SqlRecordStore

router = APIRouter(prefix="/api/disease", tags=["disease"])


def get_record_store() -> RecordStore:
    return SqlRecordStore(SessionLocal)


def get_service(store: RecordStore = Depends(get_record_store)) -> DiseaseAnalyticsService:
    return DiseaseAnalyticsService(store)


# Numeric query params stay strings: out-of-range or garbage values are clamped, not rejected.


@router.get("/districts")
def district_hierarchy(
    svc: DiseaseAnalyticsService = Depends(get_service),
    range_days: str | None = Query(None, alias="rangeDays"),
    offset_days: str | None = Query(None, alias="offsetDays"),
    district: str | None = None,
):
    return svc.district_hierarchy(range_days=range_days, offset_days=offset_days, district=district)


@router.get("/districts/{district}/taluks")
def district_taluks(
    district: str,
    svc: DiseaseAnalyticsService = Depends(get_service),
    range_days: str | None = Query(None, alias="rangeDays"),
    offset_days: str | None = Query(None, alias="offsetDays"),
):
    try:
        return svc.district_taluks(district, range_days=range_days, offset_days=offset_days)
    except ValueError as ex:
        raise HTTPException(status_code=400, detail=str(ex)) from ex


@router.get("/summary")
def disease_summary(
    svc: DiseaseAnalyticsService = Depends(get_service),
    district: str | None = None,
    range_days: str | None = Query(None, alias="rangeDays"),
    cases_range_days: str | None = Query(None, alias="casesRangeDays"),
    cases_offset_days: str | None = Query(None, alias="casesOffsetDays"),
):
    return svc.disease_summary(
        district=district,
        range_days=range_days,
        cases_range_days=cases_range_days,
        cases_offset_days=cases_offset_days,
    )


@router.get("/active-cases")
def active_cases(
    svc: DiseaseAnalyticsService = Depends(get_service),
    district: str | None = None,
    range_days: str | None = Query(None, alias="rangeDays"),
    offset_days: str | None = Query(None, alias="offsetDays"),
):
    return svc.active_cases(district=district, range_days=range_days, offset_days=offset_days)


@router.get("/timeline")
def timeline_stats(
    svc: DiseaseAnalyticsService = Depends(get_service),
    district: str | None = None,
    range_token: str | None = Query(None, alias="range"),
):
    """Quick stats strip: `range` is one of 1d/7d/10d/15d/30d (or a plain day count)."""
    return svc.timeline_stats(district=district, range_token=range_token)


@router.get("/risk-map")
def risk_map(
    svc: DiseaseAnalyticsService = Depends(get_service),
    district: str | None = None,
    range_days: str | None = Query(None, alias="rangeDays"),
    offset_days: str | None = Query(None, alias="offsetDays"),
):
    return svc.risk_map(range_days=range_days, offset_days=offset_days, district=district)
