"""Shared pytest fixtures and factories for FleetTrack tests."""

import os

# Settings are read at import time; configure before anything from fleettrack is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-secret"

import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleettrack.auth.security import create_access_token, get_password_hash
from fleettrack.db import Base, get_db
from fleettrack.main import app
from fleettrack.models.enums import DeviceOwnership, JobType, UserRole
from fleettrack.models.models import SIM, Client, Device, User, Vehicle
from fleettrack.schemas.assignments import AssignmentCreate
from fleettrack.services import lifecycle

_seq = itertools.count(1)


@pytest.fixture
def engine():
    # One shared connection so the app thread and the test see the same in-memory database
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.close()


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------- Factories ----------

@pytest.fixture
def make_user(db):
    def _make(role=UserRole.ADMIN, password="password123", is_active=True, email=None):
        n = next(_seq)
        user = User(
            name=f"{role.value.title()} {n}",
            email=email or f"{role.value.lower()}{n}@fleet.com",
            password_hash=get_password_hash(password),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token(str(user.id), role=user.role.value)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_client(db):
    def _make(name=None, **kwargs):
        row = Client(name=name or f"Client {next(_seq)}", **kwargs)
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def make_vehicle(db):
    def _make(**kwargs):
        n = next(_seq)
        row = Vehicle(
            make=kwargs.pop("make", "Toyota"),
            model=kwargs.pop("model", "Hiace"),
            plate_number=kwargs.pop("plate_number", f"DXB-{n:05d}"),
            **kwargs,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def make_device(db):
    def _make(ownership=DeviceOwnership.LEASING, **kwargs):
        n = next(_seq)
        row = Device(
            brand=kwargs.pop("brand", "Teltonika"),
            model=kwargs.pop("model", "FMC 130"),
            imei=kwargs.pop("imei", f"35630704{n:07d}"),
            ownership=ownership,
            **kwargs,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def make_sim(db):
    def _make(**kwargs):
        n = next(_seq)
        row = SIM(
            brand=kwargs.pop("brand", "DU"),
            number=kwargs.pop("number", f"050{n:07d}"),
            **kwargs,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def install(db, admin):
    """Run a lifecycle assignment with sensible defaults."""
    def _install(device, vehicle, client, sim=None, job_type=JobType.NEW_INSTALLATION, **kwargs):
        payload = AssignmentCreate(
            job_type=job_type,
            device_id=device.id,
            sim_id=sim.id if sim else None,
            vehicle_id=vehicle.id,
            client_id=client.id,
            platform=kwargs.pop("platform", "Securepath"),
            location=kwargs.pop("location", "Dubai"),
            installer_name=kwargs.pop("installer_name", "Rashid"),
            **kwargs,
        )
        return lifecycle.create_assignment(db, payload, admin.id)

    return _install
