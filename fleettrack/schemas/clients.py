from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from .common import ClientSummary, DeviceSummary
from .assignments import AssignmentResponse, RemovalResponse, ReplacementResponse
from .renewals import RenewalResponse


class ClientCreate(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: Optional[bool] = None


class ClientResponse(ClientSummary):
    created_at: datetime
    updated_at: Optional[datetime] = None


class ClientListItem(ClientResponse):
    device_count: int = 0
    assignment_count: int = 0


class ClientDetailResponse(ClientResponse):
    devices: List[DeviceSummary] = []
    assignments: List[AssignmentResponse] = []
    renewals: List[RenewalResponse] = []


class ClientHistoryResponse(BaseModel):
    assignments: List[AssignmentResponse]
    replacements: List[ReplacementResponse]
    removals: List[RemovalResponse]
    renewals: List[RenewalResponse]


class VehicleCreate(BaseModel):
    make: str
    model: str
    plate_number: str
    chassis_number: Optional[str] = None

    @field_validator("make", "model", "plate_number")
    @classmethod
    def _required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v
