from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_db
from erp.app.db.models.core_types import InventoryStatus
from erp.app.schemas.inventory import InventoryRead, StockRead
from erp.services import inventory as inventory_service

router = APIRouter(prefix="/inventories")


class InventoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    location: str = Field(min_length=1, max_length=200)
    capacity: int = Field(default=1000, ge=0)
    status: InventoryStatus = InventoryStatus.active
    organization_id: int | None = None
    manager_id: int | None = None
    description: str | None = Field(default=None, max_length=500)
    contact_phone: str | None = Field(default=None, max_length=32)


class InventoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    capacity: int | None = Field(default=None, ge=0)
    status: InventoryStatus | None = None
    organization_id: int | None = None
    manager_id: int | None = None
    description: str | None = Field(default=None, max_length=500)
    contact_phone: str | None = Field(default=None, max_length=32)
    is_active: bool | None = None


@router.get("", response_model=list[InventoryRead])
def list_inventories(organization_id: int | None = None, db: Session = Depends(get_db)):
    return inventory_service.list_inventories(db, organization_id=organization_id)


@router.post("", response_model=InventoryRead, status_code=201)
def create_inventory(payload: InventoryCreate, db: Session = Depends(get_db)):
    inventory = inventory_service.create_inventory(db, **payload.model_dump())
    db.commit()
    db.refresh(inventory)
    return inventory


@router.get("/{inventory_id}", response_model=InventoryRead)
def get_inventory(inventory_id: int, db: Session = Depends(get_db)):
    return inventory_service.get_inventory(db, inventory_id)


@router.get("/{inventory_id}/stocks", response_model=list[StockRead])
def list_inventory_stocks(inventory_id: int, db: Session = Depends(get_db)):
    inventory_service.get_inventory(db, inventory_id)
    return inventory_service.list_stocks(db, inventory_id=inventory_id)


@router.patch("/{inventory_id}", response_model=InventoryRead)
def update_inventory(inventory_id: int, payload: InventoryUpdate, db: Session = Depends(get_db)):
    inventory = inventory_service.update_inventory(db, inventory_id, **payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(inventory)
    return inventory


@router.delete("/{inventory_id}", status_code=204)
def delete_inventory(inventory_id: int, db: Session = Depends(get_db)):
    inventory_service.delete_inventory(db, inventory_id)
    db.commit()
