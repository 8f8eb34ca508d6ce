"""
Purchase and sale orders.

This module only books orders and their totals. Receiving and shipping goods,
with all stock/capacity arithmetic, lives in:
    erp.services.inventory (stock_in / stock_out)
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp.app.db.models.core_types import Currency, OrderStatus
from erp.app.db.models.models_v1 import (
    Customer,
    Inventory,
    Product,
    PurchaseOrder,
    PurchaseOrderLine,
    SaleOrder,
    SaleOrderLine,
    Supplier,
)
from erp.services._db import get_for_update
from erp.errors import NotFoundError, StateConflictError, ValidationError
from erp.services.ledger import CENT, ZERO, to_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def line_total(quantity: int, price: Decimal, discount: Decimal = ZERO, tax: Decimal = ZERO) -> Decimal:
    """quantity * price, less ``discount`` %, plus ``tax`` %."""
    gross = Decimal(quantity) * to_money(price)
    net = gross * (HUNDRED - Decimal(str(discount))) / HUNDRED
    return (net * (HUNDRED + Decimal(str(tax))) / HUNDRED).quantize(CENT)


def _check_percent(value: Any, field: str) -> Decimal:
    pct = Decimal(str(value if value is not None else 0))
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100", value=str(pct))
    return pct


def _resolve_product(db: Session, raw: Mapping[str, Any]) -> tuple[Product, int]:
    product = db.get(Product, raw.get("product_id"))
    if product is None:
        raise NotFoundError("product", raw.get("product_id"))

    qty = raw.get("quantity")
    if not isinstance(qty, int) or qty < 1:
        raise ValidationError("Quantity must be at least 1", product_id=product.id, quantity=qty)

    inventory_id = raw.get("inventory_id")
    if inventory_id is not None and db.get(Inventory, inventory_id) is None:
        raise NotFoundError("inventory", inventory_id)
    return product, qty


# ---------- PURCHASE ORDERS ----------
def create_purchase_order(
    db: Session,
    *,
    supplier_id: int,
    lines: Iterable[Mapping[str, Any]],
    organization_id: int | None = None,
    invoice_number: str | None = None,
    currency: Currency = Currency.EGP,
    expected_delivery_date: date | None = None,
    notes: str | None = None,
    created_by: int | None = None,
) -> PurchaseOrder:
    if db.get(Supplier, supplier_id) is None:
        raise NotFoundError("supplier", supplier_id)

    if invoice_number and db.execute(
        select(PurchaseOrder.id).where(PurchaseOrder.invoice_number == invoice_number)
    ).scalar_one_or_none():
        raise ValidationError("Invoice number already used", invoice_number=invoice_number)

    po = PurchaseOrder(
        supplier_id=supplier_id,
        organization_id=organization_id,
        invoice_number=invoice_number,
        currency=Currency(currency),
        expected_delivery_date=expected_delivery_date,
        notes=notes,
        created_by=created_by,
        status=OrderStatus.draft,
    )

    total = ZERO
    for raw in lines:
        product, qty = _resolve_product(db, raw)
        price = to_money(raw["price"] if raw.get("price") is not None else product.price)
        discount = _check_percent(raw.get("discount"), "discount")
        amount = line_total(qty, price, discount)
        po.lines.append(
            PurchaseOrderLine(
                product_id=product.id,
                inventory_id=raw.get("inventory_id"),
                name=raw.get("name") or product.name,
                quantity=qty,
                delivered_quantity=0,
                remaining_quantity=qty,
                price=price,
                discount=discount,
                total=amount,
            )
        )
        total += amount

    if not po.lines:
        raise ValidationError("A purchase order needs at least one line")

    po.total_amount = total
    db.add(po)
    db.flush()

    logger.info(
        "Purchase order created",
        extra={"ctx": {"purchase_order_id": po.id, "lines": len(po.lines), "total": str(total)}},
    )
    return po


def get_purchase_order(db: Session, purchase_order_id: int) -> PurchaseOrder:
    po = db.get(PurchaseOrder, purchase_order_id)
    if not po:
        raise NotFoundError("purchase order", purchase_order_id)
    return po


def approve_purchase_order(db: Session, purchase_order_id: int) -> PurchaseOrder:
    po = get_for_update(db, PurchaseOrder, purchase_order_id)
    if po is None:
        raise NotFoundError("purchase order", purchase_order_id)
    if po.status != OrderStatus.draft:
        raise StateConflictError(f"Cannot approve a {po.status.value} purchase order", purchase_order_id=po.id)

    po.status = OrderStatus.approved
    db.flush()
    logger.info("Purchase order approved", extra={"ctx": {"purchase_order_id": po.id}})
    return po


def cancel_purchase_order(db: Session, purchase_order_id: int) -> PurchaseOrder:
    po = get_for_update(db, PurchaseOrder, purchase_order_id)
    if po is None:
        raise NotFoundError("purchase order", purchase_order_id)
    if po.status not in {OrderStatus.draft, OrderStatus.approved}:
        raise StateConflictError(f"Cannot cancel a {po.status.value} purchase order", purchase_order_id=po.id)

    po.status = OrderStatus.canceled
    db.flush()
    logger.info("Purchase order canceled", extra={"ctx": {"purchase_order_id": po.id}})
    return po


# ---------- SALE ORDERS ----------
def create_sale_order(
    db: Session,
    *,
    customer_id: int,
    lines: Iterable[Mapping[str, Any]],
    organization_id: int | None = None,
    invoice_number: str | None = None,
    currency: Currency = Currency.EGP,
    shipping_cost: Decimal | int = 0,
    expected_delivery_date: date | None = None,
    notes: str | None = None,
    created_by: int | None = None,
) -> SaleOrder:
    if db.get(Customer, customer_id) is None:
        raise NotFoundError("customer", customer_id)

    shipping_cost = to_money(shipping_cost)
    if shipping_cost < 0:
        raise ValidationError("Shipping cost must not be negative")

    if invoice_number and db.execute(
        select(SaleOrder.id).where(SaleOrder.invoice_number == invoice_number)
    ).scalar_one_or_none():
        raise ValidationError("Invoice number already used", invoice_number=invoice_number)

    so = SaleOrder(
        customer_id=customer_id,
        organization_id=organization_id,
        invoice_number=invoice_number,
        currency=Currency(currency),
        shipping_cost=shipping_cost,
        expected_delivery_date=expected_delivery_date,
        notes=notes,
        created_by=created_by,
        status=OrderStatus.draft,
    )

    total = ZERO
    for raw in lines:
        product, qty = _resolve_product(db, raw)
        price = to_money(raw["price"] if raw.get("price") is not None else product.price)
        discount = _check_percent(raw.get("discount"), "discount")
        tax = _check_percent(raw.get("tax"), "tax")
        amount = line_total(qty, price, discount, tax)
        so.lines.append(
            SaleOrderLine(
                product_id=product.id,
                inventory_id=raw.get("inventory_id"),
                name=raw.get("name") or product.name,
                code=product.code,
                quantity=qty,
                price=price,
                discount=discount,
                tax=tax,
                total=amount,
            )
        )
        total += amount

    if not so.lines:
        raise ValidationError("A sale order needs at least one line")

    so.total_amount = total + shipping_cost
    db.add(so)
    db.flush()

    logger.info(
        "Sale order created",
        extra={"ctx": {"sale_order_id": so.id, "lines": len(so.lines), "total": str(so.total_amount)}},
    )
    return so


def get_sale_order(db: Session, sale_order_id: int) -> SaleOrder:
    so = db.get(SaleOrder, sale_order_id)
    if not so:
        raise NotFoundError("sale order", sale_order_id)
    return so


def approve_sale_order(db: Session, sale_order_id: int) -> SaleOrder:
    so = get_for_update(db, SaleOrder, sale_order_id)
    if so is None:
        raise NotFoundError("sale order", sale_order_id)
    if so.status != OrderStatus.draft:
        raise StateConflictError(f"Cannot approve a {so.status.value} sale order", sale_order_id=so.id)

    so.status = OrderStatus.approved
    db.flush()
    logger.info("Sale order approved", extra={"ctx": {"sale_order_id": so.id}})
    return so


def cancel_sale_order(db: Session, sale_order_id: int) -> SaleOrder:
    so = get_for_update(db, SaleOrder, sale_order_id)
    if so is None:
        raise NotFoundError("sale order", sale_order_id)
    if so.status not in {OrderStatus.draft, OrderStatus.approved}:
        raise StateConflictError(f"Cannot cancel a {so.status.value} sale order", sale_order_id=so.id)

    so.status = OrderStatus.canceled
    db.flush()
    logger.info("Sale order canceled", extra={"ctx": {"sale_order_id": so.id}})
    return so
