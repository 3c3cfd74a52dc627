import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.enums import RenewalStatus
from .common import ClientSummary, DeviceSummary, VehicleResponse


class RenewRequest(BaseModel):
    renewal_remarks: Optional[str] = None


class RenewalAssignmentSummary(BaseModel):
    id: uuid.UUID
    installation_date: datetime
    location: Optional[str] = None
    device: Optional[DeviceSummary] = None

    class Config:
        from_attributes = True


class RenewalResponse(BaseModel):
    id: uuid.UUID
    assignment_id: Optional[uuid.UUID] = None
    vehicle_id: uuid.UUID
    client_id: uuid.UUID
    platform: str
    activation_date: datetime
    certificate_expiry: datetime
    subscription_expiry: datetime
    status: RenewalStatus
    renewal_date: Optional[datetime] = None
    renewal_remarks: Optional[str] = None
    renewed_by: Optional[uuid.UUID] = None
    created_at: datetime

    client: Optional[ClientSummary] = None
    vehicle: Optional[VehicleResponse] = None

    class Config:
        from_attributes = True


class RenewalDetailResponse(RenewalResponse):
    assignment: Optional[RenewalAssignmentSummary] = None


class ExpireResponse(BaseModel):
    expired: int
