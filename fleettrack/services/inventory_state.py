"""
Inventory state machine for devices and SIMs.

Device: AVAILABLE -> ASSIGNED -> (AVAILABLE | TRANSFER_AVAILABLE) -> ASSIGNED -> ...
SIM:    AVAILABLE <-> ASSIGNED

``release`` and ``acquire`` are pure: they compute the column changes for an
item and never touch the session. ``apply_transition`` is the only place the
changes are written.
"""
import uuid
from typing import Any, Dict, Optional, Union

import structlog
from sqlalchemy.orm import Session

from ..errors import ConflictError
from ..models.enums import DeviceOwnership, DeviceStatus, SimStatus
from ..models.models import Device, SIM

logger = structlog.get_logger(__name__)

InventoryItem = Union[Device, SIM]
Transition = Dict[str, Any]


def _label(item: InventoryItem) -> str:
    return "SIM" if isinstance(item, SIM) else "Device"


def is_available(item: InventoryItem) -> bool:
    if isinstance(item, SIM):
        return SimStatus(item.status) is SimStatus.AVAILABLE
    if isinstance(item, Device):
        return DeviceStatus(item.status) is DeviceStatus.AVAILABLE
    raise TypeError(f"Not an inventory item: {type(item).__name__}")


def ensure_available(item: InventoryItem, label: Optional[str] = None) -> None:
    """Raise ConflictError unless the item can be handed out right now."""
    if not is_available(item):
        raise ConflictError(f"{label or _label(item)} is not available")


def release(item: InventoryItem) -> Transition:
    """Changes that return an item to inventory.

    The destination depends on the device's ownership as currently stored:
    LEASING devices go back to AVAILABLE and lose their client, OWNED devices
    are parked in TRANSFER_AVAILABLE with the client left as-is. SIMs always
    go back to AVAILABLE.
    """
    if isinstance(item, SIM):
        return {"status": SimStatus.AVAILABLE}
    if not isinstance(item, Device):
        raise TypeError(f"Not an inventory item: {type(item).__name__}")

    ownership = DeviceOwnership(item.ownership)
    if ownership is DeviceOwnership.LEASING:
        return {"status": DeviceStatus.AVAILABLE, "client_id": None}
    if ownership is DeviceOwnership.OWNED:
        return {"status": DeviceStatus.TRANSFER_AVAILABLE}
    raise ValueError(f"Unhandled ownership: {ownership}")


def acquire(item: InventoryItem, client_id: Optional[uuid.UUID] = None) -> Transition:
    """Changes that take an item out of inventory for a client.

    Raises ConflictError if the item is not AVAILABLE; the item is left untouched.
    """
    if not is_available(item):
        raise ConflictError("item not available")
    if isinstance(item, SIM):
        return {"status": SimStatus.ASSIGNED}
    return {"status": DeviceStatus.ASSIGNED, "client_id": client_id}


def apply_transition(
    db: Session,
    item: InventoryItem,
    changes: Transition,
    expected_status: Optional[Union[DeviceStatus, SimStatus]] = None,
) -> InventoryItem:
    """Write a transition as a conditional UPDATE.

    With ``expected_status`` the row is only updated if its stored status
    still matches; otherwise another writer got there first and the whole
    operation fails with ConflictError. The in-session object is refreshed
    from the row.
    """
    model = type(item)
    query = db.query(model).filter(model.id == item.id)
    if expected_status is not None:
        query = query.filter(model.status == expected_status)
    updated = query.update(changes, synchronize_session="fetch")
    if updated != 1:
        raise ConflictError(f"{_label(item)} is not available")
    db.refresh(item)
    logger.info(
        "inventory_transition",
        item_type=model.__tablename__,
        item_id=str(item.id),
        status=getattr(changes["status"], "value", changes["status"]),
    )
    return item


def release_item(db: Session, item: InventoryItem) -> InventoryItem:
    return apply_transition(db, item, release(item))


def acquire_item(db: Session, item: InventoryItem, client_id: Optional[uuid.UUID] = None) -> InventoryItem:
    changes = acquire(item, client_id)
    expected = SimStatus.AVAILABLE if isinstance(item, SIM) else DeviceStatus.AVAILABLE
    return apply_transition(db, item, changes, expected_status=expected)
