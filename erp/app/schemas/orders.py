from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from erp.app.db.models.core_types import Currency, OrderStatus
from erp.app.schemas.inventory import StockRead
from erp.app.schemas.ledger import PostingOutcomeRead


class PurchaseOrderLineRead(BaseModel):
    id: int
    product_id: int
    inventory_id: int | None = None
    name: str
    quantity: int
    delivered_quantity: int
    remaining_quantity: int
    price: Decimal
    discount: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class PurchaseOrderRead(BaseModel):
    id: int
    supplier_id: int
    organization_id: int | None = None
    invoice_number: str | None = None
    status: OrderStatus
    currency: Currency
    expected_delivery_date: date | None = None
    notes: str | None = None
    total_amount: Decimal
    created_by: int | None = None
    created_at: datetime
    lines: list[PurchaseOrderLineRead]

    class Config:
        from_attributes = True


class SaleOrderLineRead(BaseModel):
    id: int
    product_id: int
    inventory_id: int | None = None
    name: str
    code: str | None = None
    quantity: int
    price: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class SaleOrderRead(BaseModel):
    id: int
    customer_id: int
    organization_id: int | None = None
    invoice_number: str | None = None
    status: OrderStatus
    currency: Currency
    expected_delivery_date: date | None = None
    notes: str | None = None
    shipping_cost: Decimal
    total_amount: Decimal
    created_by: int | None = None
    created_at: datetime
    lines: list[SaleOrderLineRead]

    class Config:
        from_attributes = True


class StockInRead(BaseModel):
    order: PurchaseOrderRead
    stocks: list[StockRead]
    posting: PostingOutcomeRead


class StockOutRead(BaseModel):
    order: SaleOrderRead
    posting: PostingOutcomeRead
