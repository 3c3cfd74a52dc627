"""
Seed the local database with users, master data and sample inventory.

Usage:
  python scripts/seed_test_data.py

This script is idempotent: running it multiple times will upsert the same
records based on unique fields (email for users, name for master data and
clients, IMEI for devices, number for SIMs, plate number for vehicles).
"""

from fleettrack.db import SessionLocal, Base, engine
from fleettrack.models import models  # noqa: F401
from fleettrack.models.enums import DeviceOwnership, UserRole
from fleettrack.models.models import (
    Accessory,
    Client,
    Device,
    Installer,
    Location,
    Platform,
    SIM,
    User,
    Vehicle,
)
from fleettrack.auth.security import get_password_hash


PLATFORMS = [
    "Securepath",
    "Securepath Premium",
    "AVL View",
    "ASATEEL",
    "Teletix",
    "AVL View & ASATEEL",
    "Fleetcop",
]
LOCATIONS = ["Dubai", "Abu Dhabi", "Ajman", "Ras Al Khaimah", "Sharjah", "Umm Al-Quwain"]
INSTALLERS = ["Miqdad", "Rashid", "Waseem"]
ACCESSORIES = [
    "Immobilizer",
    "Buzzer",
    "I-Button",
    "Eye Sensor",
    "Fuel Sensor",
    "Temperature Sensor",
    "CANBUS L200",
]


def ensure_user(session, name: str, email: str, password: str, role: UserRole) -> User:
    user = session.query(User).filter(User.email == email).first()
    if user:
        user.name = name
        user.role = role
        # Keep an existing password; only set one if missing
        if not getattr(user, "password_hash", None):
            user.password_hash = get_password_hash(password)
        session.flush()
        return user
    user = User(
        name=name,
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        is_active=True,
    )
    session.add(user)
    session.flush()
    return user


def ensure_named(session, model, name: str, **kwargs):
    row = session.query(model).filter(model.name == name).first()
    if row:
        return row
    row = model(name=name, **kwargs)
    session.add(row)
    session.flush()
    return row


def ensure_accessory(session, type_: str) -> Accessory:
    row = session.query(Accessory).filter(Accessory.type == type_).first()
    if row:
        return row
    row = Accessory(type=type_)
    session.add(row)
    session.flush()
    return row


def ensure_device(session, imei: str, **kwargs) -> Device:
    row = session.query(Device).filter(Device.imei == imei).first()
    if row:
        # Status and client belong to the lifecycle; only descriptive fields are refreshed
        for k in ("brand", "model", "serial_number"):
            if k in kwargs:
                setattr(row, k, kwargs[k])
        session.flush()
        return row
    row = Device(imei=imei, **kwargs)
    session.add(row)
    session.flush()
    return row


def ensure_sim(session, number: str, **kwargs) -> SIM:
    row = session.query(SIM).filter(SIM.number == number).first()
    if row:
        return row
    row = SIM(number=number, **kwargs)
    session.add(row)
    session.flush()
    return row


def ensure_vehicle(session, plate_number: str, **kwargs) -> Vehicle:
    row = session.query(Vehicle).filter(Vehicle.plate_number == plate_number).first()
    if row:
        return row
    row = Vehicle(plate_number=plate_number, **kwargs)
    session.add(row)
    session.flush()
    return row


def main() -> None:
    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        # Users
        ensure_user(session, "Admin User", "admin@fleet.com", "admin123", UserRole.ADMIN)
        ensure_user(session, "Manager User", "manager@fleet.com", "manager123", UserRole.MANAGER)
        ensure_user(session, "Support User", "support@fleet.com", "support123", UserRole.SUPPORT)

        # Master data
        for name in PLATFORMS:
            ensure_named(session, Platform, name, is_active=True)
        for name in LOCATIONS:
            ensure_named(session, Location, name)
        for name in INSTALLERS:
            ensure_named(session, Installer, name, is_active=True)
        for type_ in ACCESSORIES:
            ensure_accessory(session, type_)

        # Clients
        ensure_named(
            session,
            Client,
            "ABC Logistics LLC",
            email="fleet@abclogistics.com",
            phone="+971 4 555 0100",
            address="Al Quoz Industrial Area 3, Dubai",
        )
        ensure_named(
            session,
            Client,
            "Gulf Transport Co",
            email="ops@gulftransport.com",
            phone="+971 2 555 0200",
            address="Mussafah M-10, Abu Dhabi",
        )

        # Vehicles
        ensure_vehicle(session, "DXB-A-12345", make="Toyota", model="Hiace", chassis_number="JTFSX23P0K6000001")
        ensure_vehicle(session, "AUH-5-67890", make="Nissan", model="Urvan", chassis_number="JN1TBNE26Z0000002")

        # Devices
        ensure_device(
            session, "356307042441013",
            brand="Teltonika", model="FMC 130", serial_number="TLT-0001", ownership=DeviceOwnership.LEASING,
        )
        ensure_device(
            session, "862061045678901",
            brand="JIMI IoT", model="JM-VL103M", serial_number="JIMI-0001", ownership=DeviceOwnership.OWNED,
        )
        ensure_device(
            session, "867060031234567",
            brand="Ruptela", model="Trace 5", serial_number="RPT-0001", ownership=DeviceOwnership.LEASING,
        )

        # SIMs
        ensure_sim(session, "0501234567", brand="DU", serial_number="8997101000000000001")
        ensure_sim(session, "0529876543", brand="Etisalat", serial_number="8997102000000000002")

        # Commit all changes
        session.commit()
        print("Seed completed: users, master data and inventory upserted.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
