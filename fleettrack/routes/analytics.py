from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.enums import UserRole
from ..models.models import as_utc
from ..schemas.reports import DashboardResponse, InstallationMetricsResponse, TechnicianPerformance
from ..services import reports as report_service

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Get dashboard statistics"""
    return report_service.dashboard(db)


@router.get("/technician-performance", response_model=List[TechnicianPerformance])
def technician_performance(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER)),
):
    return report_service.technician_performance(db, start=as_utc(start_date), end=as_utc(end_date))


@router.get("/installations", response_model=InstallationMetricsResponse)
def installation_metrics(
    db: Session = Depends(get_db),
    _=Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER)),
):
    """New installations over the last six months by month, location and platform"""
    return report_service.installation_metrics(db)
