import uuid
from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ..config import settings
from ..db import atomic, get_or_raise
from ..models.enums import ActivityAction, ActivityEntity, RenewalStatus
from ..models.models import Renewal, utcnow
from .audit import record_activity

logger = structlog.get_logger(__name__)


def extend_subscription(expiry: datetime, years: int = 1) -> datetime:
    """Push an expiry forward by calendar years; Feb 29 lands on Feb 28 in non-leap years."""
    return expiry + relativedelta(years=years)


def renew_subscription(
    db: Session,
    renewal_id: uuid.UUID,
    remarks: Optional[str],
    actor_id: Optional[uuid.UUID],
) -> Renewal:
    with atomic(db):
        renewal = get_or_raise(db, Renewal, renewal_id, "Renewal")
        previous_expiry = renewal.subscription_expiry
        renewal.subscription_expiry = extend_subscription(previous_expiry, settings.default_term_years)
        renewal.status = RenewalStatus.RENEWED
        renewal.renewal_date = utcnow()
        renewal.renewal_remarks = remarks
        renewal.renewed_by = actor_id
        db.flush()

        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.RENEW,
            entity=ActivityEntity.RENEWAL,
            entity_id=renewal.id,
            description=f"Renewed {renewal.platform} subscription",
            context={
                "previous_expiry": previous_expiry.isoformat(),
                "subscription_expiry": renewal.subscription_expiry.isoformat(),
            },
        )

    logger.info("subscription_renewed", renewal_id=str(renewal_id))
    db.refresh(renewal)
    return renewal


def expire_lapsed_renewals(db: Session, actor_id: Optional[uuid.UUID], now: Optional[datetime] = None) -> int:
    """Mark UPCOMING renewals whose subscription already ran out as EXPIRED.

    Returns the number of renewals expired. A single activity entry records the sweep.
    """
    now = now or utcnow()
    with atomic(db):
        lapsed = (
            db.query(Renewal)
            .filter(Renewal.status == RenewalStatus.UPCOMING, Renewal.subscription_expiry < now)
            .all()
        )
        for renewal in lapsed:
            renewal.status = RenewalStatus.EXPIRED
        db.flush()

        if lapsed:
            record_activity(
                db,
                user_id=actor_id,
                action=ActivityAction.UPDATE,
                entity=ActivityEntity.RENEWAL,
                entity_id=lapsed[0].id,
                description=f"Expired {len(lapsed)} lapsed renewal(s)",
                context={"expired": [str(r.id) for r in lapsed], "as_of": now.isoformat()},
            )

    logger.info("renewals_expired", count=len(lapsed))
    return len(lapsed)


def list_renewals(
    db: Session,
    status: Optional[RenewalStatus] = None,
    client_id: Optional[uuid.UUID] = None,
    platform: Optional[str] = None,
) -> List[Renewal]:
    query = db.query(Renewal)
    if status:
        query = query.filter(Renewal.status == status)
    if client_id:
        query = query.filter(Renewal.client_id == client_id)
    if platform:
        query = query.filter(Renewal.platform.ilike(f"%{platform}%"))
    return query.order_by(Renewal.subscription_expiry.asc()).all()


def upcoming_renewals(db: Session, now: Optional[datetime] = None) -> List[Renewal]:
    """Renewals falling due within the renewal window that have not been renewed yet."""
    now = now or utcnow()
    horizon = now + timedelta(days=settings.renewal_window_days)
    return (
        db.query(Renewal)
        .filter(
            Renewal.subscription_expiry >= now,
            Renewal.subscription_expiry <= horizon,
            Renewal.status != RenewalStatus.RENEWED,
        )
        .order_by(Renewal.subscription_expiry.asc())
        .all()
    )
