import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from ..models.enums import DeviceOwnership, JobType
from .common import ClientSummary, DeviceSummary, SimSummary, VehicleResponse


def _strip_required(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("must not be empty")
    return v


# Device Schemas
class DeviceCreate(BaseModel):
    brand: str
    model: str
    imei: str
    serial_number: Optional[str] = None
    ownership: DeviceOwnership = DeviceOwnership.LEASING

    @field_validator("brand", "model", "imei")
    @classmethod
    def _required(cls, v: str) -> str:
        return _strip_required(v)


class DeviceUpdate(BaseModel):
    # status and client are owned by the lifecycle operations, not by edits
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    ownership: Optional[DeviceOwnership] = None


class DeviceResponse(DeviceSummary):
    client: Optional[ClientSummary] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class DeviceAssignmentItem(BaseModel):
    id: uuid.UUID
    job_type: JobType
    platform: str
    installation_date: datetime
    subscription_expiry: datetime
    location: Optional[str] = None
    vehicle: Optional[VehicleResponse] = None
    client: Optional[ClientSummary] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DeviceDetailResponse(DeviceResponse):
    assignments: List[DeviceAssignmentItem] = []


# SIM Schemas
class SimCreate(BaseModel):
    brand: str
    number: str
    serial_number: Optional[str] = None

    @field_validator("brand", "number")
    @classmethod
    def _required(cls, v: str) -> str:
        return _strip_required(v)


class SimUpdate(BaseModel):
    brand: Optional[str] = None
    serial_number: Optional[str] = None


class SimResponse(SimSummary):
    created_at: datetime
    updated_at: Optional[datetime] = None


# Stats
class StatusCount(BaseModel):
    status: str
    ownership: Optional[str] = None
    count: int


class InventoryGroupStats(BaseModel):
    total: int
    by_status: List[StatusCount]


class InventoryStatsResponse(BaseModel):
    devices: InventoryGroupStats
    sims: InventoryGroupStats
