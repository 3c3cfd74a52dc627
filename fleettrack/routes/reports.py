import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user
from ..db import get_db
from ..models.enums import DeviceOwnership
from ..models.models import as_utc
from ..schemas.reports import ActivityReportResponse, PlatformMasterlistResponse
from ..services import reports as report_service

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/activity", response_model=ActivityReportResponse)
def activity_report(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Installations, transfers, removals, replacements and renewals in a period (default: last 30 days)"""
    return report_service.activity_report(db, start=as_utc(start_date), end=as_utc(end_date))


@router.get("/platform-masterlist", response_model=PlatformMasterlistResponse)
def platform_masterlist(
    platform: Optional[str] = Query(None),
    client_id: Optional[uuid.UUID] = Query(None),
    location: Optional[str] = Query(None),
    ownership: Optional[DeviceOwnership] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return report_service.platform_masterlist(
        db, platform=platform, client_id=client_id, location=location, ownership=ownership,
    )
