from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from erp.app.db.models.core_types import InventoryStatus, StockStatus, TransferStatus
from erp.app.schemas.ledger import PostingOutcomeRead


class InventoryRead(BaseModel):
    id: int
    name: str
    location: str
    capacity: int  # free remaining capacity
    status: InventoryStatus
    organization_id: int | None = None
    manager_id: int | None = None
    description: str | None = None
    contact_phone: str | None = None
    is_active: bool

    class Config:
        from_attributes = True


class StockRead(BaseModel):
    id: int
    product_id: int
    inventory_id: int
    quantity: int
    min_quantity: int
    max_quantity: int
    available_quantity: int
    status: StockStatus
    last_updated_by: int | None = None

    class Config:
        from_attributes = True


class StockTransferLineRead(BaseModel):
    product_id: int
    unit: int
    name: str | None = None
    code: str | None = None

    class Config:
        from_attributes = True


class StockTransferRead(BaseModel):
    id: int
    reference: str
    status: TransferStatus
    from_inventory_id: int
    to_inventory_id: int
    shipping_cost: Decimal
    notes: str | None = None
    created_by: int | None = None
    approved_by: int | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    lines: list[StockTransferLineRead]

    class Config:
        from_attributes = True


class TransferShipRead(BaseModel):
    transfer: StockTransferRead
    posting: PostingOutcomeRead
