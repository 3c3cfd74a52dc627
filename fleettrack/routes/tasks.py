import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db, get_or_raise
from ..models.enums import JobType, TaskStatus, UserRole
from ..models.models import Task, User
from ..schemas.common import MessageResponse
from ..schemas.tasks import TaskCreate, TaskResponse, TaskUpdate
from ..services import inventory as inventory_service

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

WRITE_ROLES = (UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT)


@router.get("", response_model=List[TaskResponse])
def list_tasks(
    status: Optional[TaskStatus] = Query(None),
    type: Optional[JobType] = Query(None),
    assigned_to: Optional[uuid.UUID] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return inventory_service.list_tasks(db, status=status, type=type, assigned_to=assigned_to)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return get_or_raise(db, Task, task_id, "Task")


@router.post("", response_model=TaskResponse, status_code=201)
def create_task(
    payload: TaskCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    return inventory_service.create_task(db, payload, user.id)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(*WRITE_ROLES)),
):
    return inventory_service.update_task(db, task_id, payload, user.id)


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER)),
):
    inventory_service.delete_task(db, task_id, user.id)
    return MessageResponse(message="Task deleted successfully")
