"""
Lifecycle operations: assignment, replacement and removal.

Each handler validates its preconditions against the current rows, drives the
device/SIM transitions through ``inventory_state`` and appends one activity
log entry. Everything runs in a single ``atomic`` block, so a failure at any
step leaves no partial writes behind.
"""
import uuid
from typing import Optional

import structlog
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ..config import settings
from ..db import atomic, get_or_raise
from ..errors import ConflictError
from ..models.enums import ACQUIRING_JOB_TYPES, ActivityAction, ActivityEntity, JobType, RenewalStatus
from ..models.models import (
    Assignment,
    Client,
    Device,
    Removal,
    Renewal,
    Replacement,
    SIM,
    Vehicle,
    as_utc,
    utcnow,
)
from ..schemas.assignments import AssignmentCreate, AssignmentUpdate, RemovalCreate, ReplacementCreate
from .audit import compute_diff, record_activity
from .inventory_state import acquire_item, ensure_available, release_item
from .merge import apply_partial_update, snapshot

logger = structlog.get_logger(__name__)

DATE_FIELDS = ("installation_date", "activation_date", "certificate_expiry", "subscription_expiry")
ASSIGNMENT_REQUIRED_FIELDS = ("job_type", "vehicle_id", "client_id", "platform") + DATE_FIELDS


def create_assignment(db: Session, payload: AssignmentCreate, actor_id: Optional[uuid.UUID]) -> Assignment:
    job_type = JobType(payload.job_type)
    with atomic(db):
        device = get_or_raise(db, Device, payload.device_id, "Device")
        sim = get_or_raise(db, SIM, payload.sim_id, "SIM") if payload.sim_id else None
        get_or_raise(db, Vehicle, payload.vehicle_id, "Vehicle")
        get_or_raise(db, Client, payload.client_id, "Client")

        acquires = job_type in ACQUIRING_JOB_TYPES
        if acquires:
            ensure_available(device, "Device")
        if sim is not None:
            ensure_available(sim, "SIM")

        now = utcnow()
        term_end = now + relativedelta(years=settings.default_term_years)
        assignment = Assignment(
            job_type=job_type,
            device_id=device.id,
            sim_id=sim.id if sim else None,
            vehicle_id=payload.vehicle_id,
            client_id=payload.client_id,
            platform=payload.platform,
            installation_date=as_utc(payload.installation_date) or now,
            activation_date=as_utc(payload.activation_date) or now,
            certificate_expiry=as_utc(payload.certificate_expiry) or term_end,
            subscription_expiry=as_utc(payload.subscription_expiry) or term_end,
            installer_name=payload.installer_name,
            location=payload.location,
            accessories=payload.accessories,
            remarks=payload.remarks,
            added_by=actor_id,
        )
        db.add(assignment)
        db.flush()

        if acquires:
            acquire_item(db, device, payload.client_id)
            if sim is not None:
                acquire_item(db, sim)

        db.add(Renewal(
            assignment_id=assignment.id,
            vehicle_id=assignment.vehicle_id,
            client_id=assignment.client_id,
            platform=assignment.platform,
            activation_date=assignment.activation_date,
            certificate_expiry=assignment.certificate_expiry,
            subscription_expiry=assignment.subscription_expiry,
            status=RenewalStatus.UPCOMING,
        ))

        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.ASSIGNMENT,
            entity_id=assignment.id,
            description=f"Created {job_type.value} assignment for device {device.imei}",
            context={"job_type": job_type.value, "platform": assignment.platform, "location": assignment.location},
        )

    logger.info(
        "assignment_created",
        assignment_id=str(assignment.id),
        job_type=job_type.value,
        device_id=str(assignment.device_id),
    )
    db.refresh(assignment)
    return assignment


def update_assignment(
    db: Session,
    assignment_id: uuid.UUID,
    payload: AssignmentUpdate,
    actor_id: Optional[uuid.UUID],
) -> Assignment:
    fields = list(AssignmentUpdate.model_fields)
    with atomic(db):
        assignment = get_or_raise(db, Assignment, assignment_id, "Assignment")
        updates = payload.model_dump(exclude_unset=True)
        if updates.get("vehicle_id"):
            get_or_raise(db, Vehicle, updates["vehicle_id"], "Vehicle")
        if updates.get("client_id"):
            get_or_raise(db, Client, updates["client_id"], "Client")

        before = snapshot(assignment, fields)
        apply_partial_update(assignment, payload, required=ASSIGNMENT_REQUIRED_FIELDS)
        for field in DATE_FIELDS:
            setattr(assignment, field, as_utc(getattr(assignment, field)))
        changes = compute_diff(before, snapshot(assignment, fields))

        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.UPDATE,
            entity=ActivityEntity.ASSIGNMENT,
            entity_id=assignment.id,
            description="Updated assignment",
            context={"changes": changes},
        )

    logger.info("assignment_updated", assignment_id=str(assignment_id), fields=sorted(changes))
    db.refresh(assignment)
    return assignment


def delete_assignment(db: Session, assignment_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> None:
    """Return the assignment's hardware to inventory and delete it.

    The paired renewal is kept for history; its assignment reference is cleared.
    """
    with atomic(db):
        assignment = get_or_raise(db, Assignment, assignment_id, "Assignment")
        device = get_or_raise(db, Device, assignment.device_id, "Device")
        release_item(db, device)
        if assignment.sim_id:
            release_item(db, get_or_raise(db, SIM, assignment.sim_id, "SIM"))

        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.DELETE,
            entity=ActivityEntity.ASSIGNMENT,
            entity_id=assignment.id,
            description=f"Deleted assignment for device {device.imei}",
            context={"job_type": JobType(assignment.job_type).value, "platform": assignment.platform},
        )
        db.delete(assignment)

    logger.info("assignment_deleted", assignment_id=str(assignment_id), device_status=device.status.value)


def create_replacement(db: Session, payload: ReplacementCreate, actor_id: Optional[uuid.UUID]) -> Replacement:
    with atomic(db):
        old_device = get_or_raise(db, Device, payload.old_device_id, "Old device")
        new_device = get_or_raise(db, Device, payload.new_device_id, "New device")
        get_or_raise(db, Vehicle, payload.vehicle_id, "Vehicle")
        get_or_raise(db, Client, payload.client_id, "Client")
        if old_device.id == new_device.id:
            raise ConflictError("Old and new device must be different")
        ensure_available(new_device, "New device")

        release_item(db, old_device)
        acquire_item(db, new_device, payload.client_id)

        replacement = Replacement(
            old_device_id=old_device.id,
            new_device_id=new_device.id,
            vehicle_id=payload.vehicle_id,
            client_id=payload.client_id,
            reason=payload.reason,
            replaced_by=actor_id,
        )
        db.add(replacement)
        db.flush()

        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.REPLACEMENT,
            entity_id=replacement.id,
            description=f"Replaced device {old_device.imei} with {new_device.imei}",
            context={"reason": payload.reason},
        )

    logger.info(
        "device_replaced",
        replacement_id=str(replacement.id),
        old_device_id=str(old_device.id),
        new_device_id=str(new_device.id),
    )
    db.refresh(replacement)
    return replacement


def create_removal(db: Session, payload: RemovalCreate, actor_id: Optional[uuid.UUID]) -> Removal:
    with atomic(db):
        device = get_or_raise(db, Device, payload.device_id, "Device")
        get_or_raise(db, Vehicle, payload.vehicle_id, "Vehicle")
        get_or_raise(db, Client, payload.client_id, "Client")

        release_item(db, device)

        removal = Removal(
            device_id=device.id,
            vehicle_id=payload.vehicle_id,
            client_id=payload.client_id,
            reason=payload.reason,
            removed_by=actor_id,
        )
        db.add(removal)
        db.flush()

        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.REMOVAL,
            entity_id=removal.id,
            description=f"Removed device {device.imei}",
            context={"reason": payload.reason},
        )

    logger.info("device_removed", removal_id=str(removal.id), device_id=str(device.id), status=device.status.value)
    db.refresh(removal)
    return removal
