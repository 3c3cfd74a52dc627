import uuid
from datetime import datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, field_validator

from ..models.enums import JobType
from .common import ClientSummary, DeviceSummary, SimSummary, UserSummary, VehicleResponse


class AccessoryItem(BaseModel):
    type: str
    details: Optional[str] = None


# Assignment Schemas
class AssignmentCreate(BaseModel):
    job_type: JobType
    device_id: uuid.UUID
    sim_id: Optional[uuid.UUID] = None
    vehicle_id: uuid.UUID
    client_id: uuid.UUID
    platform: str
    installation_date: Optional[datetime] = None
    activation_date: Optional[datetime] = None
    certificate_expiry: Optional[datetime] = None
    subscription_expiry: Optional[datetime] = None
    installer_name: Optional[str] = None
    location: Optional[str] = None
    accessories: Optional[List[Dict[str, Any]]] = None
    remarks: Optional[str] = None

    @field_validator("platform")
    @classmethod
    def _platform_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("platform is required")
        return v


class AssignmentUpdate(BaseModel):
    # device_id/sim_id are deliberately absent: swapping hardware goes through replacement
    job_type: Optional[JobType] = None
    vehicle_id: Optional[uuid.UUID] = None
    client_id: Optional[uuid.UUID] = None
    platform: Optional[str] = None
    installation_date: Optional[datetime] = None
    activation_date: Optional[datetime] = None
    certificate_expiry: Optional[datetime] = None
    subscription_expiry: Optional[datetime] = None
    installer_name: Optional[str] = None
    location: Optional[str] = None
    accessories: Optional[List[Dict[str, Any]]] = None
    remarks: Optional[str] = None


class AssignmentResponse(BaseModel):
    id: uuid.UUID
    job_type: JobType
    device_id: uuid.UUID
    sim_id: Optional[uuid.UUID] = None
    vehicle_id: uuid.UUID
    client_id: uuid.UUID
    platform: str
    installation_date: datetime
    activation_date: datetime
    certificate_expiry: datetime
    subscription_expiry: datetime
    installer_name: Optional[str] = None
    location: Optional[str] = None
    accessories: Optional[List[Dict[str, Any]]] = None
    remarks: Optional[str] = None
    added_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    device: Optional[DeviceSummary] = None
    sim: Optional[SimSummary] = None
    vehicle: Optional[VehicleResponse] = None
    client: Optional[ClientSummary] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


# Replacement Schemas
class ReplacementCreate(BaseModel):
    old_device_id: uuid.UUID
    new_device_id: uuid.UUID
    vehicle_id: uuid.UUID
    client_id: uuid.UUID
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("reason is required")
        return v


class ReplacementResponse(BaseModel):
    id: uuid.UUID
    old_device_id: uuid.UUID
    new_device_id: uuid.UUID
    vehicle_id: uuid.UUID
    client_id: uuid.UUID
    reason: str
    replaced_by: Optional[uuid.UUID] = None
    created_at: datetime

    old_device: Optional[DeviceSummary] = None
    new_device: Optional[DeviceSummary] = None
    vehicle: Optional[VehicleResponse] = None
    client: Optional[ClientSummary] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True


# Removal Schemas
class RemovalCreate(BaseModel):
    device_id: uuid.UUID
    vehicle_id: uuid.UUID
    client_id: uuid.UUID
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("reason is required")
        return v


class RemovalResponse(BaseModel):
    id: uuid.UUID
    device_id: uuid.UUID
    vehicle_id: uuid.UUID
    client_id: uuid.UUID
    reason: str
    removed_by: Optional[uuid.UUID] = None
    created_at: datetime

    device: Optional[DeviceSummary] = None
    vehicle: Optional[VehicleResponse] = None
    client: Optional[ClientSummary] = None
    user: Optional[UserSummary] = None

    class Config:
        from_attributes = True
