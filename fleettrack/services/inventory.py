"""
Intake and maintenance of inventory and reference records: devices, SIMs,
clients, vehicles and tasks.

Device/SIM status and a device's client are never edited here; only the
lifecycle operations move them.
"""
import uuid
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import atomic, get_or_raise
from ..errors import ConflictError
from ..models.enums import (
    ActivityAction,
    ActivityEntity,
    DeviceOwnership,
    DeviceStatus,
    JobType,
    SimStatus,
    TaskStatus,
)
from ..models.models import (
    Assignment,
    Client,
    Device,
    Removal,
    Renewal,
    Replacement,
    SIM,
    Task,
    User,
    Vehicle,
    utcnow,
)
from ..schemas.clients import ClientCreate, ClientUpdate, VehicleCreate
from ..schemas.inventory import DeviceCreate, DeviceUpdate, SimCreate, SimUpdate
from ..schemas.tasks import TaskCreate, TaskUpdate
from .audit import compute_diff, record_activity
from .merge import apply_partial_update, snapshot

logger = structlog.get_logger(__name__)

DEVICE_HISTORY_LIMIT = 10


def _flush_unique(db: Session, message: str) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        raise ConflictError(message) from exc


# ---------- DEVICES ----------

def list_devices(
    db: Session,
    status: Optional[DeviceStatus] = None,
    ownership: Optional[DeviceOwnership] = None,
    brand: Optional[str] = None,
    model: Optional[str] = None,
) -> List[Device]:
    query = db.query(Device)
    if status:
        query = query.filter(Device.status == status)
    if ownership:
        query = query.filter(Device.ownership == ownership)
    if brand:
        query = query.filter(Device.brand.ilike(f"%{brand}%"))
    if model:
        query = query.filter(Device.model.ilike(f"%{model}%"))
    return query.order_by(Device.created_at.desc()).all()


def get_device_detail(db: Session, device_id: uuid.UUID) -> Tuple[Device, List[Assignment]]:
    device = get_or_raise(db, Device, device_id, "Device")
    latest = (
        db.query(Assignment)
        .filter(Assignment.device_id == device.id)
        .order_by(Assignment.created_at.desc())
        .limit(DEVICE_HISTORY_LIMIT)
        .all()
    )
    return device, latest


def create_device(db: Session, payload: DeviceCreate, actor_id: Optional[uuid.UUID]) -> Device:
    with atomic(db):
        if db.query(Device).filter(Device.imei == payload.imei).first():
            raise ConflictError("Device with this IMEI already exists")
        device = Device(
            brand=payload.brand,
            model=payload.model,
            imei=payload.imei,
            serial_number=payload.serial_number,
            ownership=payload.ownership,
            status=DeviceStatus.AVAILABLE,
        )
        db.add(device)
        _flush_unique(db, "Device with this IMEI already exists")
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.DEVICE,
            entity_id=device.id,
            description=f"Added device {device.brand} {device.model} ({device.imei})",
        )
    logger.info("device_created", device_id=str(device.id), imei=device.imei)
    db.refresh(device)
    return device


def update_device(db: Session, device_id: uuid.UUID, payload: DeviceUpdate, actor_id: Optional[uuid.UUID]) -> Device:
    fields = list(DeviceUpdate.model_fields)
    with atomic(db):
        device = get_or_raise(db, Device, device_id, "Device")
        before = snapshot(device, fields)
        apply_partial_update(device, payload, required=("brand", "model", "ownership"))
        changes = compute_diff(before, snapshot(device, fields))
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.UPDATE,
            entity=ActivityEntity.DEVICE,
            entity_id=device.id,
            description=f"Updated device {device.imei}",
            context={"changes": changes},
        )
    db.refresh(device)
    return device


def delete_device(db: Session, device_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> None:
    with atomic(db):
        device = get_or_raise(db, Device, device_id, "Device")
        if DeviceStatus(device.status) is DeviceStatus.ASSIGNED:
            raise ConflictError("Cannot delete an assigned device")
        referenced = (
            db.query(Assignment.id).filter(Assignment.device_id == device.id).first()
            or db.query(Replacement.id).filter(
                or_(Replacement.old_device_id == device.id, Replacement.new_device_id == device.id)
            ).first()
            or db.query(Removal.id).filter(Removal.device_id == device.id).first()
        )
        if referenced:
            raise ConflictError("Cannot delete a device with installation history")
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.DELETE,
            entity=ActivityEntity.DEVICE,
            entity_id=device.id,
            description=f"Deleted device {device.imei}",
        )
        db.delete(device)
    logger.info("device_deleted", device_id=str(device_id))


# ---------- SIMS ----------

def list_sims(db: Session, status: Optional[SimStatus] = None, brand: Optional[str] = None) -> List[SIM]:
    query = db.query(SIM)
    if status:
        query = query.filter(SIM.status == status)
    if brand:
        query = query.filter(SIM.brand.ilike(f"%{brand}%"))
    return query.order_by(SIM.created_at.desc()).all()


def create_sim(db: Session, payload: SimCreate, actor_id: Optional[uuid.UUID]) -> SIM:
    with atomic(db):
        if db.query(SIM).filter(SIM.number == payload.number).first():
            raise ConflictError("SIM with this number already exists")
        sim = SIM(
            brand=payload.brand,
            number=payload.number,
            serial_number=payload.serial_number,
            status=SimStatus.AVAILABLE,
        )
        db.add(sim)
        _flush_unique(db, "SIM with this number already exists")
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.SIM,
            entity_id=sim.id,
            description=f"Added {sim.brand} SIM {sim.number}",
        )
    logger.info("sim_created", sim_id=str(sim.id))
    db.refresh(sim)
    return sim


def update_sim(db: Session, sim_id: uuid.UUID, payload: SimUpdate, actor_id: Optional[uuid.UUID]) -> SIM:
    fields = list(SimUpdate.model_fields)
    with atomic(db):
        sim = get_or_raise(db, SIM, sim_id, "SIM")
        before = snapshot(sim, fields)
        apply_partial_update(sim, payload, required=("brand",))
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.UPDATE,
            entity=ActivityEntity.SIM,
            entity_id=sim.id,
            description=f"Updated SIM {sim.number}",
            context={"changes": compute_diff(before, snapshot(sim, fields))},
        )
    db.refresh(sim)
    return sim


def delete_sim(db: Session, sim_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> None:
    with atomic(db):
        sim = get_or_raise(db, SIM, sim_id, "SIM")
        if SimStatus(sim.status) is SimStatus.ASSIGNED:
            raise ConflictError("Cannot delete an assigned SIM")
        if db.query(Assignment.id).filter(Assignment.sim_id == sim.id).first():
            raise ConflictError("Cannot delete a SIM with installation history")
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.DELETE,
            entity=ActivityEntity.SIM,
            entity_id=sim.id,
            description=f"Deleted SIM {sim.number}",
        )
        db.delete(sim)
    logger.info("sim_deleted", sim_id=str(sim_id))


# ---------- CLIENTS ----------

def list_clients(
    db: Session,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> List[Tuple[Client, int, int]]:
    """Clients ordered by name, each with its device and assignment counts."""
    query = db.query(Client)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(Client.name.ilike(term), Client.email.ilike(term)))
    if is_active is not None:
        query = query.filter(Client.is_active == is_active)
    clients = query.order_by(Client.name.asc()).all()

    device_counts: Dict[uuid.UUID, int] = dict(
        db.query(Device.client_id, func.count(Device.id)).group_by(Device.client_id).all()
    )
    assignment_counts: Dict[uuid.UUID, int] = dict(
        db.query(Assignment.client_id, func.count(Assignment.id)).group_by(Assignment.client_id).all()
    )
    return [(c, device_counts.get(c.id, 0), assignment_counts.get(c.id, 0)) for c in clients]


def create_client(db: Session, payload: ClientCreate, actor_id: Optional[uuid.UUID]) -> Client:
    with atomic(db):
        client = Client(**payload.model_dump())
        db.add(client)
        db.flush()
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.CLIENT,
            entity_id=client.id,
            description=f"Added client {client.name}",
        )
    logger.info("client_created", client_id=str(client.id))
    db.refresh(client)
    return client


def update_client(db: Session, client_id: uuid.UUID, payload: ClientUpdate, actor_id: Optional[uuid.UUID]) -> Client:
    fields = list(ClientUpdate.model_fields)
    with atomic(db):
        client = get_or_raise(db, Client, client_id, "Client")
        before = snapshot(client, fields)
        apply_partial_update(client, payload, required=("name", "is_active"))
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.UPDATE,
            entity=ActivityEntity.CLIENT,
            entity_id=client.id,
            description=f"Updated client {client.name}",
            context={"changes": compute_diff(before, snapshot(client, fields))},
        )
    db.refresh(client)
    return client


def delete_client(db: Session, client_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> None:
    with atomic(db):
        client = get_or_raise(db, Client, client_id, "Client")
        in_use = (
            db.query(Assignment.id).filter(Assignment.client_id == client.id).first()
            or db.query(Replacement.id).filter(Replacement.client_id == client.id).first()
            or db.query(Removal.id).filter(Removal.client_id == client.id).first()
            or db.query(Renewal.id).filter(Renewal.client_id == client.id).first()
        )
        if in_use:
            raise ConflictError("Cannot delete a client with existing assignments")
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.DELETE,
            entity=ActivityEntity.CLIENT,
            entity_id=client.id,
            description=f"Deleted client {client.name}",
        )
        db.delete(client)
    logger.info("client_deleted", client_id=str(client_id))


def client_history(db: Session, client_id: uuid.UUID) -> Dict[str, list]:
    client = get_or_raise(db, Client, client_id, "Client")
    return {
        "assignments": (
            db.query(Assignment).filter(Assignment.client_id == client.id)
            .order_by(Assignment.created_at.desc()).all()
        ),
        "replacements": (
            db.query(Replacement).filter(Replacement.client_id == client.id)
            .order_by(Replacement.created_at.desc()).all()
        ),
        "removals": (
            db.query(Removal).filter(Removal.client_id == client.id)
            .order_by(Removal.created_at.desc()).all()
        ),
        "renewals": (
            db.query(Renewal).filter(Renewal.client_id == client.id)
            .order_by(Renewal.subscription_expiry.desc()).all()
        ),
    }


# ---------- VEHICLES ----------

def create_vehicle(db: Session, payload: VehicleCreate, actor_id: Optional[uuid.UUID]) -> Vehicle:
    with atomic(db):
        vehicle = Vehicle(**payload.model_dump())
        db.add(vehicle)
        db.flush()
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.VEHICLE,
            entity_id=vehicle.id,
            description=f"Added vehicle {vehicle.plate_number}",
        )
    db.refresh(vehicle)
    return vehicle


# ---------- TASKS ----------

def list_tasks(
    db: Session,
    status: Optional[TaskStatus] = None,
    type: Optional[JobType] = None,
    assigned_to: Optional[uuid.UUID] = None,
) -> List[Task]:
    query = db.query(Task)
    if status:
        query = query.filter(Task.status == status)
    if type:
        query = query.filter(Task.type == type)
    if assigned_to:
        query = query.filter(Task.assigned_to == assigned_to)
    return query.order_by(Task.due_date.asc(), Task.created_at.desc()).all()


def create_task(db: Session, payload: TaskCreate, actor_id: Optional[uuid.UUID]) -> Task:
    with atomic(db):
        if payload.assigned_to:
            get_or_raise(db, User, payload.assigned_to, "Assignee")
        task = Task(
            type=payload.type,
            title=payload.title,
            description=payload.description,
            assigned_to=payload.assigned_to,
            due_date=payload.due_date,
            created_by=actor_id,
            status=TaskStatus.PENDING,
        )
        db.add(task)
        db.flush()
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.CREATE,
            entity=ActivityEntity.TASK,
            entity_id=task.id,
            description=f"Created task {task.title}",
            context={"type": JobType(task.type).value},
        )
    db.refresh(task)
    return task


def update_task(db: Session, task_id: uuid.UUID, payload: TaskUpdate, actor_id: Optional[uuid.UUID]) -> Task:
    fields = list(TaskUpdate.model_fields)
    with atomic(db):
        task = get_or_raise(db, Task, task_id, "Task")
        if payload.assigned_to:
            get_or_raise(db, User, payload.assigned_to, "Assignee")
        before = snapshot(task, fields)
        applied = apply_partial_update(task, payload, required=("status", "title"))
        if applied.get("status") == TaskStatus.DONE and "completed_at" not in applied:
            task.completed_at = utcnow()
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.UPDATE,
            entity=ActivityEntity.TASK,
            entity_id=task.id,
            description=f"Updated task {task.title}",
            context={"changes": compute_diff(before, snapshot(task, fields))},
        )
    db.refresh(task)
    return task


def delete_task(db: Session, task_id: uuid.UUID, actor_id: Optional[uuid.UUID]) -> None:
    with atomic(db):
        task = get_or_raise(db, Task, task_id, "Task")
        record_activity(
            db,
            user_id=actor_id,
            action=ActivityAction.DELETE,
            entity=ActivityEntity.TASK,
            entity_id=task.id,
            description=f"Deleted task {task.title}",
        )
        db.delete(task)
