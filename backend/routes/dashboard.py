from __future__ import annotations

from fastapi import APIRouter, Depends

from routes.disease import get_service
from services.disease_analytics_service import DiseaseAnalyticsService

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/alerts")
def outbreak_alerts(
    svc: DiseaseAnalyticsService = Depends(get_service),
    district: str | None = None,
):
    return svc.outbreak_alerts(district=district)


@router.get("/summary")
def dashboard_summary(
    svc: DiseaseAnalyticsService = Depends(get_service),
    district: str | None = None,
):
    return svc.dashboard_summary(district=district)


@router.get("/risk-snapshot")
def risk_snapshot(
    svc: DiseaseAnalyticsService = Depends(get_service),
    district: str | None = None,
):
    return svc.risk_snapshot(district=district)
