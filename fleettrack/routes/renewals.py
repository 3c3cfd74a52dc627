import uuid
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db, get_or_raise
from ..models.enums import RenewalStatus, UserRole
from ..models.models import Renewal, User
from ..schemas.renewals import ExpireResponse, RenewalDetailResponse, RenewalResponse, RenewRequest
from ..services import renewals as renewal_service

router = APIRouter(prefix="/api/renewals", tags=["renewals"])


@router.get("", response_model=List[RenewalDetailResponse])
def list_renewals(
    status: Optional[RenewalStatus] = Query(None),
    client_id: Optional[uuid.UUID] = Query(None),
    platform: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """List renewals by subscription expiry, soonest first"""
    return renewal_service.list_renewals(db, status=status, client_id=client_id, platform=platform)


@router.get("/upcoming", response_model=List[RenewalDetailResponse])
def upcoming_renewals(
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Subscriptions expiring within the renewal window that are not yet renewed"""
    return renewal_service.upcoming_renewals(db)


@router.post("/expire", response_model=ExpireResponse)
def expire_renewals(
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.ACCOUNTS)),
):
    return ExpireResponse(expired=renewal_service.expire_lapsed_renewals(db, user.id))


@router.get("/{renewal_id}", response_model=RenewalDetailResponse)
def get_renewal(
    renewal_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return get_or_raise(db, Renewal, renewal_id, "Renewal")


@router.post("/{renewal_id}/renew", response_model=RenewalResponse)
def renew(
    renewal_id: uuid.UUID,
    payload: Optional[RenewRequest] = Body(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.ACCOUNTS, UserRole.SUPPORT)),
):
    """Extend the subscription by one term"""
    remarks = payload.renewal_remarks if payload else None
    return renewal_service.renew_subscription(db, renewal_id, remarks, user.id)
