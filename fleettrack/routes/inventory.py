import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db, get_or_raise
from ..models.enums import DeviceOwnership, DeviceStatus, SimStatus, UserRole
from ..models.models import SIM, User
from ..schemas.common import MessageResponse
from ..schemas.inventory import (
    DeviceAssignmentItem,
    DeviceCreate,
    DeviceDetailResponse,
    DeviceResponse,
    DeviceUpdate,
    InventoryStatsResponse,
    SimCreate,
    SimResponse,
    SimUpdate,
)
from ..services import inventory as inventory_service
from ..services import reports as report_service

router = APIRouter(prefix="/api/inventory", tags=["inventory"])

WRITE_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT)
DELETE_ROLES = (UserRole.ADMIN, UserRole.MANAGER)


# ---------- DEVICES ----------
@router.get("/devices", response_model=List[DeviceResponse])
def list_devices(
    status: Optional[DeviceStatus] = Query(None),
    ownership: Optional[DeviceOwnership] = Query(None),
    brand: Optional[str] = Query(None),
    model: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """List devices, newest first"""
    return inventory_service.list_devices(db, status=status, ownership=ownership, brand=brand, model=model)


@router.get("/devices/{device_id}", response_model=DeviceDetailResponse)
def get_device(
    device_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Get a device with its client and latest assignments"""
    device, latest = inventory_service.get_device_detail(db, device_id)
    data = DeviceResponse.model_validate(device).model_dump()
    return DeviceDetailResponse(**data, assignments=[DeviceAssignmentItem.model_validate(a) for a in latest])


@router.post("/devices", response_model=DeviceResponse, status_code=201)
def create_device(
    payload: DeviceCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    return inventory_service.create_device(db, payload, user.id)


@router.put("/devices/{device_id}", response_model=DeviceResponse)
def update_device(
    device_id: uuid.UUID,
    payload: DeviceUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    return inventory_service.update_device(db, device_id, payload, user.id)


@router.delete("/devices/{device_id}", response_model=MessageResponse)
def delete_device(
    device_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*DELETE_ROLES)),
):
    inventory_service.delete_device(db, device_id, user.id)
    return MessageResponse(message="Device deleted successfully")


# ---------- SIMS ----------
@router.get("/sims", response_model=List[SimResponse])
def list_sims(
    status: Optional[SimStatus] = Query(None),
    brand: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return inventory_service.list_sims(db, status=status, brand=brand)


@router.get("/sims/{sim_id}", response_model=SimResponse)
def get_sim(
    sim_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return get_or_raise(db, SIM, sim_id, "SIM")


@router.post("/sims", response_model=SimResponse, status_code=201)
def create_sim(
    payload: SimCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    return inventory_service.create_sim(db, payload, user.id)


@router.put("/sims/{sim_id}", response_model=SimResponse)
def update_sim(
    sim_id: uuid.UUID,
    payload: SimUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    return inventory_service.update_sim(db, sim_id, payload, user.id)


@router.delete("/sims/{sim_id}", response_model=MessageResponse)
def delete_sim(
    sim_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*DELETE_ROLES)),
):
    inventory_service.delete_sim(db, sim_id, user.id)
    return MessageResponse(message="SIM deleted successfully")


# ---------- STATS ----------
@router.get("/stats", response_model=InventoryStatsResponse)
def inventory_stats(
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Device counts by status and ownership, SIM counts by status"""
    return report_service.inventory_stats(db)
