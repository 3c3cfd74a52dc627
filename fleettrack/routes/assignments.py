import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db, get_or_raise
from ..models.enums import JobType, UserRole
from ..models.models import Assignment, Removal, Replacement, User, as_utc
from ..schemas.assignments import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    RemovalCreate,
    RemovalResponse,
    ReplacementCreate,
    ReplacementResponse,
)
from ..schemas.common import MessageResponse
from ..services import lifecycle

router = APIRouter(prefix="/api/assignments", tags=["assignments"])

CREATE_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT, UserRole.SALES)
WRITE_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT)
DELETE_ROLES = (UserRole.ADMIN, UserRole.MANAGER)


# ---------- REPLACEMENTS ----------
@router.get("/replacements/all", response_model=List[ReplacementResponse])
def list_replacements(
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return db.query(Replacement).order_by(Replacement.created_at.desc()).all()


@router.post("/replacements", response_model=ReplacementResponse, status_code=201)
def create_replacement(
    payload: ReplacementCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    """Swap a device on a vehicle: old device released, new device assigned"""
    return lifecycle.create_replacement(db, payload, user.id)


# ---------- REMOVALS ----------
@router.get("/removals/all", response_model=List[RemovalResponse])
def list_removals(
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return db.query(Removal).order_by(Removal.created_at.desc()).all()


@router.post("/removals", response_model=RemovalResponse, status_code=201)
def create_removal(
    payload: RemovalCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    """Take a device off a vehicle and return it to inventory"""
    return lifecycle.create_removal(db, payload, user.id)


# ---------- ASSIGNMENTS ----------
@router.get("", response_model=List[AssignmentResponse])
def list_assignments(
    job_type: Optional[JobType] = Query(None),
    client_id: Optional[uuid.UUID] = Query(None),
    platform: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """List assignments with optional filters, newest first"""
    query = db.query(Assignment)
    if job_type:
        query = query.filter(Assignment.job_type == job_type)
    if client_id:
        query = query.filter(Assignment.client_id == client_id)
    if platform:
        query = query.filter(Assignment.platform.ilike(f"%{platform}%"))
    if location:
        query = query.filter(Assignment.location.ilike(f"%{location}%"))
    if start_date:
        query = query.filter(Assignment.installation_date >= as_utc(start_date))
    if end_date:
        query = query.filter(Assignment.installation_date <= as_utc(end_date))
    return query.order_by(Assignment.created_at.desc()).all()


@router.get("/{assignment_id}", response_model=AssignmentResponse)
def get_assignment(
    assignment_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return get_or_raise(db, Assignment, assignment_id, "Assignment")


@router.post("", response_model=AssignmentResponse, status_code=201)
def create_assignment(
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*CREATE_ROLES)),
):
    """Install a device (and optional SIM) in a client's vehicle"""
    return lifecycle.create_assignment(db, payload, user.id)


@router.put("/{assignment_id}", response_model=AssignmentResponse)
def update_assignment(
    assignment_id: uuid.UUID,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    return lifecycle.update_assignment(db, assignment_id, payload, user.id)


@router.delete("/{assignment_id}", response_model=MessageResponse)
def delete_assignment(
    assignment_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*DELETE_ROLES)),
):
    lifecycle.delete_assignment(db, assignment_id, user.id)
    return MessageResponse(message="Assignment deleted successfully")
