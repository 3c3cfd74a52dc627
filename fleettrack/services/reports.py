"""
Read-side reporting: dashboard counters, technician and installation
analytics, activity and platform reports, inventory statistics.

Nothing here writes to the store.
"""
import uuid
from collections import Counter, OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from ..config import settings
from ..models.enums import DeviceOwnership, DeviceStatus, JobType, RenewalStatus, TaskStatus
from ..models.models import (
    Assignment,
    Client,
    Device,
    Removal,
    Renewal,
    Replacement,
    SIM,
    Task,
    Vehicle,
    utcnow,
)

ACTIVITY_WINDOW_DAYS = 30
INSTALLATION_TREND_MONTHS = 6


def _enum_value(value: Any) -> str:
    return getattr(value, "value", value)


def dashboard(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    horizon = now + timedelta(days=settings.renewal_window_days)

    total_devices = db.query(Device).count()
    assigned_devices = db.query(Device).filter(Device.status == DeviceStatus.ASSIGNED).count()

    return {
        "inventory": {
            "total_devices": total_devices,
            "assigned_devices": assigned_devices,
            # TRANSFER_AVAILABLE devices count as available stock here
            "available_devices": total_devices - assigned_devices,
        },
        "fleet": {
            "total_clients": db.query(Client).filter(Client.is_active.is_(True)).count(),
            "total_vehicles": db.query(Vehicle).count(),
        },
        "this_month": {
            "installations": db.query(Assignment).filter(
                Assignment.job_type == JobType.NEW_INSTALLATION,
                Assignment.created_at >= month_start,
            ).count(),
            "removals": db.query(Removal).filter(Removal.created_at >= month_start).count(),
        },
        "alerts": {
            "upcoming_renewals": db.query(Renewal).filter(
                Renewal.subscription_expiry <= horizon,
                Renewal.status != RenewalStatus.RENEWED,
            ).count(),
            "pending_tasks": db.query(Task).filter(Task.status == TaskStatus.PENDING).count(),
        },
    }


def technician_performance(
    db: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Assignments per installer in [start, end]; defaults to the last month."""
    end = end or utcnow()
    start = start or end - relativedelta(months=1)
    rows = (
        db.query(
            Assignment.installer_name,
            func.count(Assignment.id),
            func.count(distinct(Assignment.location)),
        )
        .filter(Assignment.created_at >= start, Assignment.created_at <= end)
        .group_by(Assignment.installer_name)
        .order_by(func.count(Assignment.id).desc())
        .all()
    )
    return [
        {"name": name, "installations": installations, "locations_count": locations}
        for name, installations, locations in rows
    ]


def installation_metrics(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    since = now - relativedelta(months=INSTALLATION_TREND_MONTHS)
    installations = (
        db.query(Assignment)
        .filter(
            Assignment.job_type == JobType.NEW_INSTALLATION,
            Assignment.installation_date >= since,
        )
        .order_by(Assignment.installation_date.asc())
        .all()
    )

    by_month: Dict[str, int] = OrderedDict()
    for a in installations:
        key = a.installation_date.strftime("%Y-%m")
        by_month[key] = by_month.get(key, 0) + 1

    return {
        "by_month": dict(by_month),
        "by_location": dict(Counter(a.location or "Unknown" for a in installations)),
        "by_platform": dict(Counter(a.platform for a in installations)),
        "total": len(installations),
    }


def activity_report(
    db: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Dict[str, Any]:
    end = end or utcnow()
    start = start or end - timedelta(days=ACTIVITY_WINDOW_DAYS)

    def assignments_of(job_type: JobType) -> List[Assignment]:
        return (
            db.query(Assignment)
            .filter(
                Assignment.job_type == job_type,
                Assignment.created_at >= start,
                Assignment.created_at <= end,
            )
            .order_by(Assignment.created_at.desc())
            .all()
        )

    installations = assignments_of(JobType.NEW_INSTALLATION)
    transfers = assignments_of(JobType.TRANSFER_INSTALLATION)
    removals = (
        db.query(Removal)
        .filter(Removal.created_at >= start, Removal.created_at <= end)
        .order_by(Removal.created_at.desc())
        .all()
    )
    replacements = (
        db.query(Replacement)
        .filter(Replacement.created_at >= start, Replacement.created_at <= end)
        .order_by(Replacement.created_at.desc())
        .all()
    )
    renewals = (
        db.query(Renewal)
        .filter(Renewal.renewal_date >= start, Renewal.renewal_date <= end)
        .order_by(Renewal.renewal_date.desc())
        .all()
    )

    return {
        "period": {"start": start, "end": end},
        "summary": {
            "installations": len(installations),
            "transfers": len(transfers),
            "removals": len(removals),
            "replacements": len(replacements),
            "renewals": len(renewals),
        },
        "details": {
            "installations": installations,
            "transfers": transfers,
            "removals": removals,
            "replacements": replacements,
            "renewals": renewals,
        },
    }


def platform_masterlist(
    db: Session,
    platform: Optional[str] = None,
    client_id: Optional[uuid.UUID] = None,
    location: Optional[str] = None,
    ownership: Optional[DeviceOwnership] = None,
) -> Dict[str, Any]:
    query = db.query(Assignment).join(Device, Assignment.device_id == Device.id)
    if platform:
        query = query.filter(Assignment.platform.ilike(f"%{platform}%"))
    if client_id:
        query = query.filter(Assignment.client_id == client_id)
    if location:
        query = query.filter(Assignment.location.ilike(f"%{location}%"))
    if ownership:
        query = query.filter(Device.ownership == ownership)
    assignments = query.order_by(Assignment.platform.asc(), Assignment.created_at.desc()).all()

    grouped: Dict[str, List[Assignment]] = OrderedDict()
    for a in assignments:
        grouped.setdefault(a.platform, []).append(a)

    return {
        "total": len(assignments),
        "platforms": list(grouped),
        "data": grouped,
    }


def inventory_stats(db: Session) -> Dict[str, Any]:
    device_rows = (
        db.query(Device.status, Device.ownership, func.count(Device.id))
        .group_by(Device.status, Device.ownership)
        .all()
    )
    sim_rows = db.query(SIM.status, func.count(SIM.id)).group_by(SIM.status).all()
    return {
        "devices": {
            "total": sum(count for _, _, count in device_rows),
            "by_status": [
                {"status": _enum_value(status), "ownership": _enum_value(ownership), "count": count}
                for status, ownership, count in device_rows
            ],
        },
        "sims": {
            "total": sum(count for _, count in sim_rows),
            "by_status": [{"status": _enum_value(status), "count": count} for status, count in sim_rows],
        },
    }
