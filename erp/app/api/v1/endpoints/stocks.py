from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_actor_id, get_db
from erp.app.schemas.inventory import StockRead
from erp.services import inventory as inventory_service

router = APIRouter(prefix="/stocks")


class StockCreate(BaseModel):
    inventory_id: int
    product_id: int
    quantity: int = Field(ge=0)
    min_quantity: int = Field(default=inventory_service.DEFAULT_MIN_QUANTITY, ge=0)
    max_quantity: int = Field(default=inventory_service.DEFAULT_MAX_QUANTITY, ge=0)


class StockUpdate(BaseModel):
    quantity: int | None = Field(default=None, ge=0)
    min_quantity: int | None = Field(default=None, ge=0)
    max_quantity: int | None = Field(default=None, ge=0)


@router.get("", response_model=list[StockRead])
def list_stocks(
    inventory_id: int | None = None,
    product_id: int | None = None,
    db: Session = Depends(get_db),
):
    return inventory_service.list_stocks(db, inventory_id=inventory_id, product_id=product_id)


@router.post("", response_model=StockRead, status_code=201)
def create_stock(
    payload: StockCreate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    stock = inventory_service.create_stock(db, **payload.model_dump(), actor_id=actor_id)
    db.commit()
    db.refresh(stock)
    return stock


@router.get("/{stock_id}", response_model=StockRead)
def get_stock(stock_id: int, db: Session = Depends(get_db)):
    return inventory_service.get_stock(db, stock_id)


@router.patch("/{stock_id}", response_model=StockRead)
def update_stock(
    stock_id: int,
    payload: StockUpdate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    stock = inventory_service.update_stock(db, stock_id, **payload.model_dump(exclude_unset=True), actor_id=actor_id)
    db.commit()
    db.refresh(stock)
    return stock


@router.delete("/{stock_id}", status_code=204)
def delete_stock(stock_id: int, db: Session = Depends(get_db)):
    inventory_service.delete_stock(db, stock_id)
    db.commit()
