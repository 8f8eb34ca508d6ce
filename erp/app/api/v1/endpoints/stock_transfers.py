from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_actor_id, get_db, get_registry
from erp.app.db.models.core_types import TransferStatus
from erp.app.schemas.inventory import StockTransferRead, TransferShipRead
from erp.services import transfers
from erp.services.posting import PostingRegistry

router = APIRouter(prefix="/stock-transfers")


class TransferProductIn(BaseModel):
    product_id: int
    unit: int = Field(ge=1)
    name: str | None = None
    code: str | None = None


class TransferCreate(BaseModel):
    from_inventory_id: int
    to_inventory_id: int
    products: list[TransferProductIn] = Field(min_length=1)
    reference: str | None = Field(default=None, max_length=64)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    notes: str | None = None


class TransferUpdate(BaseModel):
    products: list[TransferProductIn] | None = None
    shipping_cost: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None


class TransferShip(BaseModel):
    shipping_cost: Decimal | None = Field(default=None, ge=0)


@router.get("", response_model=list[StockTransferRead])
def list_transfers(status: TransferStatus | None = None, db: Session = Depends(get_db)):
    return transfers.list_transfers(db, status=status)


@router.post("", response_model=StockTransferRead, status_code=201)
def create_transfer(
    payload: TransferCreate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    transfer = transfers.create_transfer(db, **payload.model_dump(), created_by=actor_id)
    db.commit()
    db.refresh(transfer)
    return transfer


@router.get("/{transfer_id}", response_model=StockTransferRead)
def get_transfer(transfer_id: int, db: Session = Depends(get_db)):
    return transfers.get_transfer(db, transfer_id)


@router.get("/{transfer_id}/document")
def get_transfer_document(transfer_id: int, db: Session = Depends(get_db)):
    return transfers.transfer_document(db, transfer_id)


@router.patch("/{transfer_id}", response_model=StockTransferRead)
def update_transfer(transfer_id: int, payload: TransferUpdate, db: Session = Depends(get_db)):
    transfer = transfers.update_transfer(db, transfer_id, **payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(transfer)
    return transfer


@router.post("/{transfer_id}/ship", response_model=TransferShipRead)
def ship_transfer(
    transfer_id: int,
    payload: TransferShip | None = None,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
    registry: PostingRegistry = Depends(get_registry),
):
    result = transfers.ship_transfer(
        db,
        transfer_id,
        shipping_cost=payload.shipping_cost if payload else None,
        actor_id=actor_id,
        registry=registry,
    )
    db.commit()
    db.refresh(result["transfer"])
    return result


@router.post("/{transfer_id}/deliver", response_model=StockTransferRead)
def deliver_transfer(
    transfer_id: int,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    transfer = transfers.deliver_transfer(db, transfer_id, actor_id=actor_id)
    db.commit()
    db.refresh(transfer)
    return transfer


@router.post("/{transfer_id}/cancel", response_model=StockTransferRead)
def cancel_transfer(transfer_id: int, db: Session = Depends(get_db)):
    transfer = transfers.cancel_transfer(db, transfer_id)
    db.commit()
    db.refresh(transfer)
    return transfer
