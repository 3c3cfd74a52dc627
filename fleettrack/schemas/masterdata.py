import uuid
from typing import Optional

from pydantic import BaseModel


class PlatformResponse(BaseModel):
    id: uuid.UUID
    name: str
    is_active: bool

    class Config:
        from_attributes = True


class LocationResponse(BaseModel):
    id: uuid.UUID
    name: str

    class Config:
        from_attributes = True


class InstallerResponse(BaseModel):
    id: uuid.UUID
    name: str
    phone: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class AccessoryResponse(BaseModel):
    id: uuid.UUID
    type: str
    description: Optional[str] = None

    class Config:
        from_attributes = True
