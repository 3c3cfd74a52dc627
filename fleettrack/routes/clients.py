import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db, get_or_raise
from ..models.enums import UserRole
from ..models.models import Client, User
from ..schemas.clients import (
    ClientCreate,
    ClientDetailResponse,
    ClientHistoryResponse,
    ClientListItem,
    ClientResponse,
    ClientUpdate,
)
from ..schemas.common import MessageResponse
from ..services import inventory as inventory_service

router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.get("", response_model=List[ClientListItem])
def list_clients(
    search: Optional[str] = Query(None, description="Match on name or email"),
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    rows = inventory_service.list_clients(db, search=search, is_active=is_active)
    return [
        ClientListItem(
            **ClientResponse.model_validate(client).model_dump(),
            device_count=device_count,
            assignment_count=assignment_count,
        )
        for client, device_count, assignment_count in rows
    ]


@router.get("/{client_id}", response_model=ClientDetailResponse)
def get_client(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    return get_or_raise(db, Client, client_id, "Client")


@router.get("/{client_id}/history", response_model=ClientHistoryResponse)
def get_client_history(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
):
    """Assignments, replacements, removals and renewals for one client"""
    return inventory_service.client_history(db, client_id)


@router.post("", response_model=ClientResponse, status_code=201)
def create_client(
    payload: ClientCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(
        UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT, UserRole.SALES, UserRole.ACCOUNTS,
    )),
):
    return inventory_service.create_client(db, payload, user.id)


@router.put("/{client_id}", response_model=ClientResponse)
def update_client(
    client_id: uuid.UUID,
    payload: ClientUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT, UserRole.ACCOUNTS)),
):
    return inventory_service.update_client(db, client_id, payload, user.id)


@router.delete("/{client_id}", response_model=MessageResponse)
def delete_client(
    client_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER)),
):
    inventory_service.delete_client(db, client_id, user.id)
    return MessageResponse(message="Client deleted successfully")
