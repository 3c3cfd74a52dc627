import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.enums import DeviceOwnership, DeviceStatus, SimStatus


class UserSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: str

    class Config:
        from_attributes = True


class ClientSummary(BaseModel):
    id: uuid.UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True


class VehicleResponse(BaseModel):
    id: uuid.UUID
    make: str
    model: str
    plate_number: str
    chassis_number: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeviceSummary(BaseModel):
    id: uuid.UUID
    brand: str
    model: str
    imei: str
    serial_number: Optional[str] = None
    status: DeviceStatus
    ownership: DeviceOwnership
    client_id: Optional[uuid.UUID] = None

    class Config:
        from_attributes = True


class SimSummary(BaseModel):
    id: uuid.UUID
    brand: str
    number: str
    serial_number: Optional[str] = None
    status: SimStatus

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
