from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from erp.app.api.deps import get_actor_id, get_db, get_registry
from erp.app.db.models.core_types import Currency, OrderStatus
from erp.app.db.models.models_v1 import PurchaseOrder
from erp.app.schemas.orders import PurchaseOrderRead, StockInRead
from erp.services import inventory, procurement
from erp.services.posting import PostingRegistry

router = APIRouter(prefix="/purchase-orders")


class POLineCreate(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)
    price: Decimal | None = Field(default=None, ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    inventory_id: int | None = None
    name: str | None = None


class POCreate(BaseModel):
    supplier_id: int
    organization_id: int | None = None
    invoice_number: str | None = Field(default=None, max_length=64)
    currency: Currency = Currency.EGP
    expected_delivery_date: date | None = None
    notes: str | None = None
    lines: list[POLineCreate] = Field(min_length=1)


class DeliveryIn(BaseModel):
    product_id: int
    delivered_quantity: int = Field(gt=0)
    inventory_id: int | None = None


class StockInPayload(BaseModel):
    deliveries: list[DeliveryIn] = Field(min_length=1)


@router.get("", response_model=list[PurchaseOrderRead])
def list_pos(status: OrderStatus | None = None, db: Session = Depends(get_db)):
    stmt = select(PurchaseOrder).order_by(PurchaseOrder.id.desc())
    if status is not None:
        stmt = stmt.where(PurchaseOrder.status == status)
    return db.execute(stmt).scalars().all()


@router.get("/{po_id}", response_model=PurchaseOrderRead)
def get_po(po_id: int, db: Session = Depends(get_db)):
    return procurement.get_purchase_order(db, po_id)


@router.post("", response_model=PurchaseOrderRead, status_code=201)
def create_po(
    payload: POCreate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    po = procurement.create_purchase_order(db, **payload.model_dump(), created_by=actor_id)
    db.commit()
    db.refresh(po)
    return po


@router.post("/{po_id}/approve", response_model=PurchaseOrderRead)
def approve_po(po_id: int, db: Session = Depends(get_db)):
    po = procurement.approve_purchase_order(db, po_id)
    db.commit()
    db.refresh(po)
    return po


@router.post("/{po_id}/cancel", response_model=PurchaseOrderRead)
def cancel_po(po_id: int, db: Session = Depends(get_db)):
    po = procurement.cancel_purchase_order(db, po_id)
    db.commit()
    db.refresh(po)
    return po


@router.post("/{po_id}/stock-in", response_model=StockInRead)
def stock_in(
    po_id: int,
    payload: StockInPayload,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
    registry: PostingRegistry = Depends(get_registry),
):
    result = inventory.stock_in(
        db,
        po_id,
        [d.model_dump() for d in payload.deliveries],
        registry,
        actor_id=actor_id,
    )
    db.commit()
    db.refresh(result["order"])
    return result
