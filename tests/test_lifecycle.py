"""
Tests for the lifecycle operations.

Tests cover:
- assignment creation, update and deletion
- device replacement and removal
- paired renewal records
- all-or-nothing behaviour on failure
"""

import uuid
from datetime import datetime
from types import SimpleNamespace

import pytest
from dateutil.relativedelta import relativedelta
from sqlalchemy import update

from fleettrack.errors import ConflictError, NotFoundError
from fleettrack.models.enums import (
    ActivityAction,
    ActivityEntity,
    DeviceOwnership,
    DeviceStatus,
    JobType,
    RenewalStatus,
    SimStatus,
)
from fleettrack.models.models import ActivityLog, Assignment, Device, Renewal, Replacement, SIM
from fleettrack.schemas.assignments import AssignmentUpdate, RemovalCreate, ReplacementCreate
from fleettrack.services import inventory_state, lifecycle


@pytest.fixture
def vehicle(make_vehicle):
    return make_vehicle()


@pytest.fixture
def customer(make_client):
    return make_client("ABC Logistics LLC")


class TestCreateAssignment:
    """Tests for installing a device in a vehicle."""

    def test_new_installation_assigns_device_and_sim(self, db, install, make_device, make_sim, vehicle, customer):
        device = make_device()
        sim = make_sim()
        assignment = install(device, vehicle, customer, sim=sim)

        assert db.get(Device, device.id).status == DeviceStatus.ASSIGNED
        assert db.get(Device, device.id).client_id == customer.id
        assert db.get(SIM, sim.id).status == SimStatus.ASSIGNED
        assert assignment.device.id == device.id
        assert assignment.client.id == customer.id

    def test_creates_exactly_one_matching_renewal(self, db, install, make_device, vehicle, customer):
        assignment = install(make_device(), vehicle, customer, platform="AVL View")
        renewals = db.query(Renewal).filter(Renewal.assignment_id == assignment.id).all()

        assert len(renewals) == 1
        renewal = renewals[0]
        assert renewal.status == RenewalStatus.UPCOMING
        assert renewal.platform == "AVL View"
        assert renewal.vehicle_id == assignment.vehicle_id
        assert renewal.client_id == assignment.client_id
        assert renewal.activation_date == assignment.activation_date
        assert renewal.certificate_expiry == assignment.certificate_expiry
        assert renewal.subscription_expiry == assignment.subscription_expiry

    def test_defaults_to_a_one_year_term(self, install, make_device, vehicle, customer):
        assignment = install(make_device(), vehicle, customer)
        assert assignment.subscription_expiry == assignment.installation_date + relativedelta(years=1)
        assert assignment.certificate_expiry == assignment.subscription_expiry

    def test_explicit_dates_are_kept(self, install, make_device, vehicle, customer):
        installed = datetime(2024, 2, 29, 9, 30)
        assignment = install(
            make_device(), vehicle, customer,
            installation_date=installed,
            activation_date=installed,
            subscription_expiry=datetime(2025, 2, 28, 9, 30),
        )
        assert assignment.installation_date == installed
        assert assignment.subscription_expiry == datetime(2025, 2, 28, 9, 30)

    def test_assigned_device_is_rejected_and_nothing_is_written(self, db, install, make_device, vehicle, customer):
        device = make_device()
        install(device, vehicle, customer)
        counts = (db.query(Assignment).count(), db.query(Renewal).count(), db.query(ActivityLog).count())

        with pytest.raises(ConflictError, match="Device is not available"):
            install(device, vehicle, customer)

        assert (db.query(Assignment).count(), db.query(Renewal).count(), db.query(ActivityLog).count()) == counts

    def test_transfer_available_device_cannot_be_newly_installed(self, install, make_device, vehicle, customer):
        device = make_device(ownership=DeviceOwnership.OWNED, status=DeviceStatus.TRANSFER_AVAILABLE)
        with pytest.raises(ConflictError):
            install(device, vehicle, customer)

    def test_assigned_sim_is_rejected_and_device_untouched(self, db, install, make_device, make_sim, vehicle, customer):
        sim = make_sim(status=SimStatus.ASSIGNED)
        device = make_device()
        with pytest.raises(ConflictError, match="SIM is not available"):
            install(device, vehicle, customer, sim=sim)
        assert db.get(Device, device.id).status == DeviceStatus.AVAILABLE

    def test_assigned_sim_is_rejected_for_transfer_installation(self, db, install, make_device, make_sim,
                                                                vehicle, customer):
        device = make_device(ownership=DeviceOwnership.OWNED, status=DeviceStatus.TRANSFER_AVAILABLE)
        sim = make_sim(status=SimStatus.ASSIGNED)
        with pytest.raises(ConflictError, match="SIM is not available"):
            install(device, vehicle, customer, sim=sim, job_type=JobType.TRANSFER_INSTALLATION)
        assert db.query(Assignment).count() == 0
        assert db.query(Renewal).count() == 0

    def test_transfer_installation_leaves_inventory_alone(self, db, install, make_device, vehicle, customer):
        device = make_device(ownership=DeviceOwnership.OWNED, status=DeviceStatus.TRANSFER_AVAILABLE)
        install(device, vehicle, customer, job_type=JobType.TRANSFER_INSTALLATION)
        assert db.get(Device, device.id).status == DeviceStatus.TRANSFER_AVAILABLE
        assert db.query(Renewal).count() == 1

    def test_missing_device_is_not_found(self, install, vehicle, customer):
        ghost = SimpleNamespace(id=uuid.uuid4())
        with pytest.raises(NotFoundError, match="Device not found"):
            install(ghost, vehicle, customer)

    def test_logs_one_create_entry(self, db, install, make_device, vehicle, customer):
        assignment = install(make_device(), vehicle, customer, platform="Fleetcop", location="Sharjah")
        entries = db.query(ActivityLog).filter(ActivityLog.entity == ActivityEntity.ASSIGNMENT).all()
        assert len(entries) == 1
        assert entries[0].action == ActivityAction.CREATE
        assert entries[0].entity_id == assignment.id
        assert entries[0].context == {
            "job_type": "NEW_INSTALLATION",
            "platform": "Fleetcop",
            "location": "Sharjah",
        }

    def test_failure_mid_sequence_rolls_everything_back(self, db, monkeypatch, install, make_device, make_sim,
                                                        vehicle, customer):
        device = make_device()
        sim = make_sim()

        def _boom(*args, **kwargs):
            raise RuntimeError("log store unavailable")

        monkeypatch.setattr(lifecycle, "record_activity", _boom)
        with pytest.raises(RuntimeError):
            install(device, vehicle, customer, sim=sim)

        assert db.query(Assignment).count() == 0
        assert db.query(Renewal).count() == 0
        assert db.get(Device, device.id).status == DeviceStatus.AVAILABLE
        assert db.get(Device, device.id).client_id is None
        assert db.get(SIM, sim.id).status == SimStatus.AVAILABLE


class TestUpdateAssignment:
    """Tests for partial assignment edits."""

    def test_partial_update_and_diff(self, db, admin, install, make_device, vehicle, customer):
        assignment = install(make_device(), vehicle, customer, remarks="initial")
        updated = lifecycle.update_assignment(
            db, assignment.id, AssignmentUpdate(location="Ajman", platform=None), admin.id,
        )
        assert updated.location == "Ajman"
        assert updated.platform == "Securepath"  # null on a required field is ignored
        assert updated.remarks == "initial"

        entry = (
            db.query(ActivityLog)
            .filter(ActivityLog.action == ActivityAction.UPDATE, ActivityLog.entity_id == assignment.id)
            .one()
        )
        assert entry.context["changes"] == {"location": {"before": "Dubai", "after": "Ajman"}}

    def test_explicit_null_clears_optional_field(self, db, admin, install, make_device, vehicle, customer):
        assignment = install(make_device(), vehicle, customer, remarks="initial")
        updated = lifecycle.update_assignment(db, assignment.id, AssignmentUpdate(remarks=None), admin.id)
        assert updated.remarks is None

    def test_does_not_touch_inventory(self, db, admin, install, make_device, vehicle, customer):
        device = make_device()
        assignment = install(device, vehicle, customer)
        lifecycle.update_assignment(db, assignment.id, AssignmentUpdate(job_type=JobType.TRANSFER_INSTALLATION), admin.id)
        assert db.get(Device, device.id).status == DeviceStatus.ASSIGNED

    def test_missing_assignment(self, db, admin):
        with pytest.raises(NotFoundError):
            lifecycle.update_assignment(db, uuid.uuid4(), AssignmentUpdate(location="Ajman"), admin.id)


class TestDeleteAssignment:
    """Tests for undoing an installation."""

    def test_leasing_device_and_sim_return_to_stock(self, db, admin, install, make_device, make_sim, vehicle, customer):
        device = make_device(ownership=DeviceOwnership.LEASING)
        sim = make_sim()
        assignment = install(device, vehicle, customer, sim=sim)
        assignment_id = assignment.id
        renewal_id = db.query(Renewal).filter(Renewal.assignment_id == assignment_id).one().id

        lifecycle.delete_assignment(db, assignment_id, admin.id)

        stored = db.get(Device, device.id)
        assert stored.status == DeviceStatus.AVAILABLE
        assert stored.client_id is None
        assert db.get(SIM, sim.id).status == SimStatus.AVAILABLE
        assert db.get(Assignment, assignment_id) is None
        # The renewal outlives its assignment
        renewal = db.get(Renewal, renewal_id)
        assert renewal is not None
        assert renewal.assignment_id is None

    def test_owned_device_parks_for_transfer(self, db, admin, install, make_device, vehicle, customer):
        device = make_device(ownership=DeviceOwnership.OWNED)
        assignment = install(device, vehicle, customer)
        lifecycle.delete_assignment(db, assignment.id, admin.id)
        stored = db.get(Device, device.id)
        assert stored.status == DeviceStatus.TRANSFER_AVAILABLE
        assert stored.client_id == customer.id

    def test_device_can_be_installed_again_after_delete(self, db, admin, install, make_device, vehicle, customer):
        device = make_device()
        first_id = install(device, vehicle, customer).id
        lifecycle.delete_assignment(db, first_id, admin.id)
        second = install(device, vehicle, customer)
        assert db.get(Device, device.id).status == DeviceStatus.ASSIGNED
        assert second.id != first_id


class TestReplacement:
    """Tests for swapping one device for another."""

    def test_leasing_swap(self, db, admin, install, make_device, vehicle, customer):
        old = make_device(ownership=DeviceOwnership.LEASING)
        new = make_device()
        install(old, vehicle, customer)

        replacement = lifecycle.create_replacement(db, ReplacementCreate(
            old_device_id=old.id, new_device_id=new.id,
            vehicle_id=vehicle.id, client_id=customer.id, reason="Faulty GPS antenna",
        ), admin.id)

        old_row, new_row = db.get(Device, old.id), db.get(Device, new.id)
        assert old_row.status == DeviceStatus.AVAILABLE
        assert old_row.client_id is None
        assert new_row.status == DeviceStatus.ASSIGNED
        assert new_row.client_id == customer.id
        assert replacement.replaced_by == admin.id

        entry = db.query(ActivityLog).filter(ActivityLog.entity == ActivityEntity.REPLACEMENT).one()
        assert entry.context == {"reason": "Faulty GPS antenna"}

    def test_same_device_is_rejected(self, db, admin, install, make_device, vehicle, customer):
        device = make_device()
        install(device, vehicle, customer)
        with pytest.raises(ConflictError):
            lifecycle.create_replacement(db, ReplacementCreate(
                old_device_id=device.id, new_device_id=device.id,
                vehicle_id=vehicle.id, client_id=customer.id, reason="Swap",
            ), admin.id)
        assert db.get(Device, device.id).status == DeviceStatus.ASSIGNED

    def test_unavailable_new_device_leaves_old_untouched(self, db, admin, install, make_device, vehicle, customer):
        old = make_device()
        busy = make_device()
        install(old, vehicle, customer)
        install(busy, vehicle, customer)
        with pytest.raises(ConflictError, match="New device is not available"):
            lifecycle.create_replacement(db, ReplacementCreate(
                old_device_id=old.id, new_device_id=busy.id,
                vehicle_id=vehicle.id, client_id=customer.id, reason="Swap",
            ), admin.id)
        assert db.get(Device, old.id).status == DeviceStatus.ASSIGNED

    def test_owned_old_device_parks_for_transfer(self, db, admin, install, make_device, vehicle, customer):
        old = make_device(ownership=DeviceOwnership.OWNED)
        new = make_device()
        install(old, vehicle, customer)
        lifecycle.create_replacement(db, ReplacementCreate(
            old_device_id=old.id, new_device_id=new.id,
            vehicle_id=vehicle.id, client_id=customer.id, reason="Upgrade",
        ), admin.id)

        old_row = db.get(Device, old.id)
        assert old_row.status == DeviceStatus.TRANSFER_AVAILABLE
        assert old_row.client_id == customer.id
        assert db.get(Device, new.id).status == DeviceStatus.ASSIGNED

    def test_missing_new_device(self, db, admin, install, make_device, vehicle, customer):
        old = make_device()
        install(old, vehicle, customer)
        with pytest.raises(NotFoundError, match="New device not found"):
            lifecycle.create_replacement(db, ReplacementCreate(
                old_device_id=old.id, new_device_id=uuid.uuid4(),
                vehicle_id=vehicle.id, client_id=customer.id, reason="Swap",
            ), admin.id)
        assert db.get(Device, old.id).status == DeviceStatus.ASSIGNED

    def test_new_device_taken_after_check_rolls_back_release(self, db, admin, monkeypatch, install, make_device,
                                                             vehicle, customer):
        old = make_device(ownership=DeviceOwnership.LEASING)
        new = make_device()
        install(old, vehicle, customer)
        new_id = new.id

        def _taken_meanwhile(session, item, client_id=None):
            # a concurrent writer claims the device between the check and the write
            session.execute(update(Device).where(Device.id == new_id).values(status=DeviceStatus.ASSIGNED))
            return inventory_state.acquire_item(session, item, client_id)

        monkeypatch.setattr(lifecycle, "acquire_item", _taken_meanwhile)
        with pytest.raises(ConflictError):
            lifecycle.create_replacement(db, ReplacementCreate(
                old_device_id=old.id, new_device_id=new_id,
                vehicle_id=vehicle.id, client_id=customer.id, reason="Swap",
            ), admin.id)

        old_row = db.get(Device, old.id)
        assert old_row.status == DeviceStatus.ASSIGNED
        assert old_row.client_id == customer.id
        assert db.get(Device, new_id).status == DeviceStatus.AVAILABLE
        assert db.query(Replacement).count() == 0
        assert db.query(ActivityLog).filter(ActivityLog.entity == ActivityEntity.REPLACEMENT).count() == 0


class TestRemoval:
    """Tests for taking a device out of service."""

    def test_owned_device_keeps_client(self, db, admin, install, make_device, vehicle, customer):
        device = make_device(ownership=DeviceOwnership.OWNED)
        install(device, vehicle, customer)
        removal = lifecycle.create_removal(db, RemovalCreate(
            device_id=device.id, vehicle_id=vehicle.id, client_id=customer.id, reason="Vehicle sold",
        ), admin.id)

        stored = db.get(Device, device.id)
        assert stored.status == DeviceStatus.TRANSFER_AVAILABLE
        assert stored.client_id == customer.id
        assert removal.removed_by == admin.id

    def test_missing_device(self, db, admin, vehicle, customer):
        with pytest.raises(NotFoundError):
            lifecycle.create_removal(db, RemovalCreate(
                device_id=uuid.uuid4(), vehicle_id=vehicle.id, client_id=customer.id, reason="Gone",
            ), admin.id)

    def test_leasing_device_returns_to_stock(self, db, admin, install, make_device, vehicle, customer):
        device = make_device(ownership=DeviceOwnership.LEASING)
        install(device, vehicle, customer)
        lifecycle.create_removal(db, RemovalCreate(
            device_id=device.id, vehicle_id=vehicle.id, client_id=customer.id, reason="Contract ended",
        ), admin.id)

        stored = db.get(Device, device.id)
        assert stored.status == DeviceStatus.AVAILABLE
        assert stored.client_id is None
