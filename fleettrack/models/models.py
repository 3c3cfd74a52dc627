import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    JSON,
    Text,
    Index,
    Enum as SAEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, Mapped, mapped_column

from ..db import Base
from .enums import (
    ActivityAction,
    ActivityEntity,
    DeviceOwnership,
    DeviceStatus,
    JobType,
    RenewalStatus,
    SimStatus,
    TaskStatus,
    UserRole,
)


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)


def utcnow() -> datetime:
    # Stored naive in UTC so SQLite and PostgreSQL round-trip the same values
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise an incoming datetime to the naive-UTC form the store uses."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def enum_column(enum_cls):
    return SAEnum(enum_cls, native_enum=False, length=50, validate_strings=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(enum_column(UserRole), default=UserRole.SUPPORT, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    devices = relationship("Device", back_populates="client")
    assignments = relationship("Assignment", back_populates="client", order_by="Assignment.created_at.desc()")
    renewals = relationship("Renewal", back_populates="client", order_by="Renewal.subscription_expiry")


class Vehicle(Base):
    __tablename__ = "vehicles"

    id: Mapped[uuid.UUID] = uuid_pk()
    make: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    plate_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    chassis_number: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Device(Base):
    """GPS/telematics unit tracked through the inventory lifecycle"""
    __tablename__ = "devices"

    id: Mapped[uuid.UUID] = uuid_pk()
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    imei: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[DeviceStatus] = mapped_column(enum_column(DeviceStatus), default=DeviceStatus.AVAILABLE, nullable=False)
    ownership: Mapped[DeviceOwnership] = mapped_column(enum_column(DeviceOwnership), default=DeviceOwnership.LEASING, nullable=False)
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="SET NULL"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    client = relationship("Client", back_populates="devices")
    assignments = relationship("Assignment", back_populates="device", order_by="Assignment.created_at.desc()")

    __table_args__ = (
        Index('idx_device_status_ownership', 'status', 'ownership'),
    )


class SIM(Base):
    __tablename__ = "sims"

    id: Mapped[uuid.UUID] = uuid_pk()
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[SimStatus] = mapped_column(enum_column(SimStatus), default=SimStatus.AVAILABLE, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)


class Assignment(Base):
    """Installation/activation of a device (+ optional SIM) in a client's vehicle"""
    __tablename__ = "assignments"

    id: Mapped[uuid.UUID] = uuid_pk()
    job_type: Mapped[JobType] = mapped_column(enum_column(JobType), nullable=False, index=True)
    device_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("devices.id"), nullable=False, index=True)
    sim_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("sims.id"), index=True)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False, index=True)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    installation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    activation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    certificate_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    subscription_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    installer_name: Mapped[Optional[str]] = mapped_column(String(255))
    location: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    accessories: Mapped[Optional[list]] = mapped_column(JSON)  # [{type, details}], opaque to the state machine
    remarks: Mapped[Optional[str]] = mapped_column(Text)
    added_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    device = relationship("Device", back_populates="assignments")
    sim = relationship("SIM")
    vehicle = relationship("Vehicle")
    client = relationship("Client", back_populates="assignments")
    user = relationship("User")
    renewals = relationship("Renewal", back_populates="assignment")


class Replacement(Base):
    """Swap of one device for another on the same vehicle/client"""
    __tablename__ = "replacements"

    id: Mapped[uuid.UUID] = uuid_pk()
    old_device_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("devices.id"), nullable=False, index=True)
    new_device_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("devices.id"), nullable=False, index=True)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    replaced_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    old_device = relationship("Device", foreign_keys=[old_device_id])
    new_device = relationship("Device", foreign_keys=[new_device_id])
    vehicle = relationship("Vehicle")
    client = relationship("Client")
    user = relationship("User")


class Removal(Base):
    """Device taken out of service for a vehicle"""
    __tablename__ = "removals"

    id: Mapped[uuid.UUID] = uuid_pk()
    device_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("devices.id"), nullable=False, index=True)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    removed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    device = relationship("Device")
    vehicle = relationship("Vehicle")
    client = relationship("Client")
    user = relationship("User")


class Renewal(Base):
    """Subscription-expiry tracking paired with an assignment"""
    __tablename__ = "renewals"

    id: Mapped[uuid.UUID] = uuid_pk()
    # Kept when its assignment is deleted; the reference is cleared
    assignment_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("assignments.id", ondelete="SET NULL"), index=True)
    vehicle_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("vehicles.id"), nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(100), nullable=False)
    activation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    certificate_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    subscription_expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[RenewalStatus] = mapped_column(enum_column(RenewalStatus), default=RenewalStatus.UPCOMING, nullable=False, index=True)
    renewal_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    renewal_remarks: Mapped[Optional[str]] = mapped_column(Text)
    renewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    assignment = relationship("Assignment", back_populates="renewals")
    vehicle = relationship("Vehicle")
    client = relationship("Client", back_populates="renewals")


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = uuid_pk()
    type: Mapped[JobType] = mapped_column(enum_column(JobType), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[TaskStatus] = mapped_column(enum_column(TaskStatus), default=TaskStatus.PENDING, nullable=False, index=True)
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    assignee = relationship("User", foreign_keys=[assigned_to])
    creator = relationship("User", foreign_keys=[created_by])


class ActivityLog(Base):
    """Append-only audit trail of mutating operations"""
    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = uuid_pk()
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    action: Mapped[ActivityAction] = mapped_column(enum_column(ActivityAction), nullable=False)
    entity: Mapped[ActivityEntity] = mapped_column(enum_column(ActivityEntity), nullable=False, index=True)
    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    context: Mapped[Optional[dict]] = mapped_column(JSON)  # Opaque payload: {job_type, platform, reason, changes, ...}
    integrity_hash: Mapped[Optional[str]] = mapped_column(String(64))  # SHA256 hash for integrity verification
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    user = relationship("User")

    __table_args__ = (
        Index('idx_activity_entity', 'entity', 'entity_id'),
        Index('idx_activity_user', 'user_id', 'created_at'),
    )


# Master data

class Platform(Base):
    __tablename__ = "platforms"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Location(Base):
    __tablename__ = "locations"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)


class Installer(Base):
    __tablename__ = "installers"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Accessory(Base):
    __tablename__ = "accessories"

    id: Mapped[uuid.UUID] = uuid_pk()
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
