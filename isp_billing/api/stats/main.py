from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from ...db.engine_sync import get_sync_session
from ...services.report_service import ReportService
from ..clients.models import Client
from .models import DashboardStats, MonthlyReport

router = APIRouter()


def get_report_service(session: Session = Depends(get_sync_session)) -> ReportService:
    return ReportService(session)


@router.get("/stats/dashboard", response_model=DashboardStats)
def api_get_dashboard_stats(service: ReportService = Depends(get_report_service)):
    return service.dashboard_summary()


@router.get("/stats/upcoming", response_model=list[Client])
def api_get_upcoming_payments(
    days: int = Query(default=7, ge=0, le=62),
    service: ReportService = Depends(get_report_service),
):
    return service.upcoming_due(days=days)


@router.get("/stats/monthly-report", response_model=MonthlyReport)
def api_get_monthly_report(
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
    service: ReportService = Depends(get_report_service),
):
    return service.monthly_payment_report(year, month)
