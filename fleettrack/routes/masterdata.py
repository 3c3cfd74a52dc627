from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth.security import get_current_user, require_roles
from ..db import get_db
from ..models.enums import UserRole
from ..models.models import Accessory, Installer, Location, Platform, User, Vehicle
from ..schemas.clients import VehicleCreate
from ..schemas.common import VehicleResponse
from ..schemas.masterdata import AccessoryResponse, InstallerResponse, LocationResponse, PlatformResponse
from ..services import inventory as inventory_service

router = APIRouter(prefix="/api/masterdata", tags=["masterdata"])


@router.get("/platforms", response_model=List[PlatformResponse])
def list_platforms(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(Platform).filter(Platform.is_active.is_(True)).order_by(Platform.name.asc()).all()


@router.get("/locations", response_model=List[LocationResponse])
def list_locations(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(Location).order_by(Location.name.asc()).all()


@router.get("/installers", response_model=List[InstallerResponse])
def list_installers(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(Installer).filter(Installer.is_active.is_(True)).order_by(Installer.name.asc()).all()


@router.get("/accessories", response_model=List[AccessoryResponse])
def list_accessories(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(Accessory).order_by(Accessory.type.asc()).all()


@router.get("/vehicles", response_model=List[VehicleResponse])
def list_vehicles(db: Session = Depends(get_db), _=Depends(get_current_user)):
    return db.query(Vehicle).order_by(Vehicle.plate_number.asc()).all()


@router.post("/vehicles", response_model=VehicleResponse, status_code=201)
def create_vehicle(
    payload: VehicleCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER, UserRole.SUPPORT, UserRole.SALES)),
):
    return inventory_service.create_vehicle(db, payload, user.id)
