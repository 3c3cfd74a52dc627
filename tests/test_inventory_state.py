"""
Tests for the device/SIM inventory state machine.

Tests cover:
- release destinations per ownership
- acquire preconditions
- conditional writes guarding against concurrent acquires
"""

import uuid

import pytest
from sqlalchemy import update

from fleettrack.errors import ConflictError
from fleettrack.models.enums import DeviceOwnership, DeviceStatus, SimStatus
from fleettrack.models.models import SIM, Device
from fleettrack.services.inventory_state import (
    acquire,
    acquire_item,
    ensure_available,
    is_available,
    release,
    release_item,
)


def _device(status=DeviceStatus.AVAILABLE, ownership=DeviceOwnership.LEASING, client_id=None):
    return Device(brand="Teltonika", model="FMC 130", imei="356307042441013",
                  status=status, ownership=ownership, client_id=client_id)


class TestRelease:
    """Tests for returning items to inventory."""

    def test_leasing_device_returns_to_available_and_loses_client(self):
        device = _device(DeviceStatus.ASSIGNED, DeviceOwnership.LEASING, client_id=uuid.uuid4())
        assert release(device) == {"status": DeviceStatus.AVAILABLE, "client_id": None}

    def test_owned_device_parks_in_transfer_available(self):
        device = _device(DeviceStatus.ASSIGNED, DeviceOwnership.OWNED, client_id=uuid.uuid4())
        changes = release(device)
        assert changes == {"status": DeviceStatus.TRANSFER_AVAILABLE}
        assert "client_id" not in changes

    def test_sim_returns_to_available(self):
        sim = SIM(brand="DU", number="0501234567", status=SimStatus.ASSIGNED)
        assert release(sim) == {"status": SimStatus.AVAILABLE}

    def test_rejects_non_inventory_objects(self):
        with pytest.raises(TypeError):
            release(object())


class TestAcquire:
    """Tests for taking items out of inventory."""

    def test_available_device_is_assigned_to_client(self):
        client_id = uuid.uuid4()
        changes = acquire(_device(), client_id)
        assert changes == {"status": DeviceStatus.ASSIGNED, "client_id": client_id}

    def test_available_sim_is_assigned(self):
        sim = SIM(brand="DU", number="0501234567", status=SimStatus.AVAILABLE)
        assert acquire(sim) == {"status": SimStatus.ASSIGNED}

    @pytest.mark.parametrize("status", [DeviceStatus.ASSIGNED, DeviceStatus.TRANSFER_AVAILABLE])
    def test_unavailable_device_fails_without_mutation(self, status):
        original_client = uuid.uuid4()
        device = _device(status, client_id=original_client)
        with pytest.raises(ConflictError, match="item not available"):
            acquire(device, uuid.uuid4())
        assert device.status == status
        assert device.client_id == original_client

    def test_assigned_sim_fails(self):
        sim = SIM(brand="DU", number="0501234567", status=SimStatus.ASSIGNED)
        with pytest.raises(ConflictError):
            acquire(sim)


class TestAvailability:
    """Tests for availability checks."""

    def test_is_available(self):
        assert is_available(_device())
        assert not is_available(_device(DeviceStatus.TRANSFER_AVAILABLE))

    def test_ensure_available_uses_label(self):
        with pytest.raises(ConflictError, match="New device is not available"):
            ensure_available(_device(DeviceStatus.ASSIGNED), "New device")

    def test_ensure_available_default_label(self):
        sim = SIM(brand="DU", number="0501234567", status=SimStatus.ASSIGNED)
        with pytest.raises(ConflictError, match="SIM is not available"):
            ensure_available(sim)


class TestConditionalWrites:
    """Tests for transitions written against the store."""

    def test_acquire_item_persists(self, db, make_device, make_client):
        device = make_device()
        client = make_client()
        acquire_item(db, device, client.id)
        db.commit()
        stored = db.get(Device, device.id)
        assert stored.status == DeviceStatus.ASSIGNED
        assert stored.client_id == client.id

    def test_stale_read_loses_the_race(self, db, make_device, make_client):
        device = make_device()
        client = make_client()
        assert device.status == DeviceStatus.AVAILABLE
        assert client.id is not None
        # Another writer assigns the device behind this session's back; the loaded copy goes stale
        db.connection().execute(
            update(Device.__table__)
            .where(Device.__table__.c.id == device.id)
            .values(status=DeviceStatus.ASSIGNED)
        )
        with pytest.raises(ConflictError):
            acquire_item(db, device, client.id)

    def test_release_item_uses_stored_ownership(self, db, make_device, make_client):
        client = make_client()
        device = make_device(ownership=DeviceOwnership.OWNED, status=DeviceStatus.ASSIGNED, client_id=client.id)
        release_item(db, device)
        db.commit()
        stored = db.get(Device, device.id)
        assert stored.status == DeviceStatus.TRANSFER_AVAILABLE
        assert stored.client_id == client.id
