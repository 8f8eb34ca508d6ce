from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from erp.app.api.deps import get_actor_id, get_db, get_registry
from erp.app.db.models.core_types import Currency, OrderStatus
from erp.app.db.models.models_v1 import SaleOrder
from erp.app.schemas.orders import SaleOrderRead, StockOutRead
from erp.services import inventory, procurement
from erp.services.posting import PostingRegistry

router = APIRouter(prefix="/sale-orders")


class SOLineCreate(BaseModel):
    product_id: int
    inventory_id: int
    quantity: int = Field(gt=0)
    price: Decimal | None = Field(default=None, ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    tax: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    name: str | None = None


class SOCreate(BaseModel):
    customer_id: int
    organization_id: int | None = None
    invoice_number: str | None = Field(default=None, max_length=64)
    currency: Currency = Currency.EGP
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    expected_delivery_date: date | None = None
    notes: str | None = None
    lines: list[SOLineCreate] = Field(min_length=1)


@router.get("", response_model=list[SaleOrderRead])
def list_sale_orders(status: OrderStatus | None = None, db: Session = Depends(get_db)):
    stmt = select(SaleOrder).order_by(SaleOrder.id.desc())
    if status is not None:
        stmt = stmt.where(SaleOrder.status == status)
    return db.execute(stmt).scalars().all()


@router.get("/{so_id}", response_model=SaleOrderRead)
def get_sale_order(so_id: int, db: Session = Depends(get_db)):
    return procurement.get_sale_order(db, so_id)


@router.post("", response_model=SaleOrderRead, status_code=201)
def create_sale_order(
    payload: SOCreate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    so = procurement.create_sale_order(db, **payload.model_dump(), created_by=actor_id)
    db.commit()
    db.refresh(so)
    return so


@router.post("/{so_id}/approve", response_model=SaleOrderRead)
def approve_sale_order(so_id: int, db: Session = Depends(get_db)):
    so = procurement.approve_sale_order(db, so_id)
    db.commit()
    db.refresh(so)
    return so


@router.post("/{so_id}/cancel", response_model=SaleOrderRead)
def cancel_sale_order(so_id: int, db: Session = Depends(get_db)):
    so = procurement.cancel_sale_order(db, so_id)
    db.commit()
    db.refresh(so)
    return so


@router.post("/{so_id}/stock-out", response_model=StockOutRead)
def stock_out(
    so_id: int,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
    registry: PostingRegistry = Depends(get_registry),
):
    result = inventory.stock_out(db, so_id, registry, actor_id=actor_id)
    db.commit()
    db.refresh(result["order"])
    return result
