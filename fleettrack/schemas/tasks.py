import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ..models.enums import JobType, TaskStatus
from .common import UserSummary


class TaskCreate(BaseModel):
    type: JobType
    title: str
    description: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("title is required")
        return v


class TaskUpdate(BaseModel):
    status: Optional[TaskStatus] = None
    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class TaskResponse(BaseModel):
    id: uuid.UUID
    type: JobType
    title: str
    description: Optional[str] = None
    status: TaskStatus
    assigned_to: Optional[uuid.UUID] = None
    created_by: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    assignee: Optional[UserSummary] = None
    creator: Optional[UserSummary] = None

    class Config:
        from_attributes = True
