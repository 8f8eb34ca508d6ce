"""
Inventory capacity and stock movements.

``Inventory.capacity`` is the FREE remaining space of a warehouse, not its
size. Every change of a stock quantity moves capacity by the same amount in
the opposite direction, inside the caller's transaction:

    capacity_after == capacity_before - added + removed

All lines of a movement are validated before the first row is touched, so a
rejected stock-in / stock-out leaves every stock and inventory unchanged.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp.app.db.models.core_types import InventoryStatus, OrderStatus, StockStatus
from erp.app.db.models.models_v1 import (
    Inventory,
    Product,
    PurchaseOrder,
    PurchaseOrderLine,
    SaleOrder,
    Stock,
)
from erp.services import posting
from erp.services._db import get_for_update
from erp.errors import (
    InsufficientCapacityError,
    InsufficientStockError,
    NotFoundError,
    ReferencedError,
    StateConflictError,
    ValidationError,
)
from erp.services.ledger import CENT, ZERO

logger = logging.getLogger(__name__)

DEFAULT_MIN_QUANTITY = 10
DEFAULT_MAX_QUANTITY = 1000

# orders that can still receive / ship goods
RECEIVABLE_PO_STATUSES = {OrderStatus.approved, OrderStatus.shipped}
CLOSED_ORDER_STATUSES = {OrderStatus.delivered, OrderStatus.canceled}

INVENTORY_UPDATABLE = {
    "name",
    "location",
    "capacity",
    "status",
    "organization_id",
    "manager_id",
    "description",
    "contact_phone",
    "is_active",
}


def derive_stock_status(quantity: int, min_quantity: int, max_quantity: int) -> StockStatus:
    if quantity == 0:
        return StockStatus.out_of_stock
    if quantity <= min_quantity:
        return StockStatus.low_stock
    if quantity >= max_quantity:
        return StockStatus.overstock
    return StockStatus.in_stock


def refresh_stock_status(stock: Stock) -> None:
    stock.status = derive_stock_status(stock.quantity, stock.min_quantity, stock.max_quantity)


def lock_inventory(db: Session, inventory_id: int) -> Inventory:
    inventory = get_for_update(db, Inventory, inventory_id)
    if inventory is None:
        logger.error("Inventory not found", extra={"ctx": {"inventory_id": inventory_id}})
        raise NotFoundError("inventory", inventory_id)
    return inventory


def find_stock_for_update(db: Session, product_id: int, inventory_id: int) -> Stock | None:
    db.flush()
    return (
        db.execute(
            select(Stock)
            .where(Stock.product_id == product_id)
            .where(Stock.inventory_id == inventory_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .one_or_none()
    )


def _positive_quantity(value: Any, field: str = "quantity") -> int:
    try:
        qty = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", value=value)
    if qty < 1:
        raise ValidationError(f"{field} must be at least 1", value=qty)
    return qty


# ---------- INVENTORIES ----------
def create_inventory(
    db: Session,
    *,
    name: str,
    location: str,
    capacity: int = 1000,
    status: InventoryStatus = InventoryStatus.active,
    organization_id: int | None = None,
    manager_id: int | None = None,
    description: str | None = None,
    contact_phone: str | None = None,
) -> Inventory:
    if capacity < 0:
        raise ValidationError("Capacity must not be negative", capacity=capacity)

    inventory = Inventory(
        name=name.strip(),
        location=location.strip(),
        capacity=capacity,
        status=InventoryStatus(status),
        organization_id=organization_id,
        manager_id=manager_id,
        description=description,
        contact_phone=contact_phone,
    )
    db.add(inventory)
    db.flush()

    logger.info(
        "Inventory created",
        extra={"ctx": {"inventory_id": inventory.id, "name": inventory.name, "capacity": capacity}},
    )
    return inventory


def get_inventory(db: Session, inventory_id: int) -> Inventory:
    inventory = db.get(Inventory, inventory_id)
    if not inventory:
        raise NotFoundError("inventory", inventory_id)
    return inventory


def list_inventories(db: Session, *, organization_id: int | None = None) -> list[Inventory]:
    stmt = select(Inventory).order_by(Inventory.name)
    if organization_id is not None:
        stmt = stmt.where(Inventory.organization_id == organization_id)
    return list(db.execute(stmt).scalars().all())


def update_inventory(db: Session, inventory_id: int, **fields: Any) -> Inventory:
    unknown = set(fields) - INVENTORY_UPDATABLE
    if unknown:
        raise ValidationError(f"Inventory fields cannot be updated: {', '.join(sorted(unknown))}")
    if fields.get("capacity") is not None and fields["capacity"] < 0:
        raise ValidationError("Capacity must not be negative", capacity=fields["capacity"])

    inventory = lock_inventory(db, inventory_id)
    for key, value in fields.items():
        setattr(inventory, key, value)
    db.flush()

    logger.info("Inventory updated", extra={"ctx": {"inventory_id": inventory_id, "fields": sorted(fields)}})
    return inventory


def delete_inventory(db: Session, inventory_id: int) -> None:
    inventory = get_inventory(db, inventory_id)

    stocks = db.execute(select(func.count(Stock.id)).where(Stock.inventory_id == inventory_id)).scalar_one()
    if stocks:
        logger.error("Cannot delete inventory holding stock", extra={"ctx": {"inventory_id": inventory_id}})
        raise ReferencedError("Cannot delete inventory with existing stock", inventory_id=inventory_id)

    db.delete(inventory)
    db.flush()
    logger.info("Inventory deleted", extra={"ctx": {"inventory_id": inventory_id}})


# ---------- STOCKS ----------
def get_stock(db: Session, stock_id: int) -> Stock:
    stock = db.get(Stock, stock_id)
    if not stock:
        raise NotFoundError("stock", stock_id)
    return stock


def list_stocks(db: Session, *, inventory_id: int | None = None, product_id: int | None = None) -> list[Stock]:
    stmt = select(Stock).order_by(Stock.inventory_id, Stock.product_id)
    if inventory_id is not None:
        stmt = stmt.where(Stock.inventory_id == inventory_id)
    if product_id is not None:
        stmt = stmt.where(Stock.product_id == product_id)
    return list(db.execute(stmt).scalars().all())


def create_stock(
    db: Session,
    *,
    inventory_id: int,
    product_id: int,
    quantity: int,
    min_quantity: int = DEFAULT_MIN_QUANTITY,
    max_quantity: int = DEFAULT_MAX_QUANTITY,
    actor_id: int | None = None,
) -> Stock:
    ctx = {"inventory_id": inventory_id, "product_id": product_id, "quantity": quantity}
    logger.info("Creating stock", extra={"ctx": ctx})

    if quantity < 0:
        raise ValidationError("Quantity must not be negative", quantity=quantity)

    inventory = lock_inventory(db, inventory_id)
    if db.get(Product, product_id) is None:
        raise NotFoundError("product", product_id)

    if find_stock_for_update(db, product_id, inventory_id) is not None:
        logger.error("Stock already exists for this product in this inventory", extra={"ctx": ctx})
        raise ValidationError(
            "Stock already exists for this product in this inventory",
            product_id=product_id,
            inventory_id=inventory_id,
        )

    if quantity > inventory.capacity:
        logger.error("Insufficient inventory capacity", extra={"ctx": {**ctx, "capacity": inventory.capacity}})
        raise InsufficientCapacityError(inventory_id, inventory.capacity, quantity)

    stock = Stock(
        inventory_id=inventory_id,
        product_id=product_id,
        quantity=quantity,
        min_quantity=min_quantity,
        max_quantity=max_quantity,
        last_updated_by=actor_id,
    )
    refresh_stock_status(stock)
    inventory.capacity -= quantity

    db.add(stock)
    db.flush()

    logger.info("Stock created", extra={"ctx": {**ctx, "stock_id": stock.id, "capacity": inventory.capacity}})
    return stock


def update_stock(
    db: Session,
    stock_id: int,
    *,
    quantity: int | None = None,
    min_quantity: int | None = None,
    max_quantity: int | None = None,
    actor_id: int | None = None,
) -> Stock:
    """
    Change a stock row. A quantity change of ``delta`` consumes ``delta`` units
    of free capacity (a negative delta gives capacity back).
    """
    stock = get_for_update(db, Stock, stock_id)
    if stock is None:
        logger.error("Stock not found", extra={"ctx": {"stock_id": stock_id}})
        raise NotFoundError("stock", stock_id)

    if quantity is not None:
        if quantity < 0:
            raise ValidationError("Quantity must not be negative", quantity=quantity)

        inventory = lock_inventory(db, stock.inventory_id)
        delta = quantity - stock.quantity
        if delta > inventory.capacity:
            logger.error(
                "Insufficient inventory capacity",
                extra={"ctx": {"stock_id": stock_id, "delta": delta, "capacity": inventory.capacity}},
            )
            raise InsufficientCapacityError(inventory.id, inventory.capacity, delta)

        inventory.capacity -= delta
        stock.quantity = quantity

    if min_quantity is not None:
        stock.min_quantity = min_quantity
    if max_quantity is not None:
        stock.max_quantity = max_quantity
    if actor_id is not None:
        stock.last_updated_by = actor_id

    refresh_stock_status(stock)
    db.flush()

    logger.info("Stock updated", extra={"ctx": {"stock_id": stock_id, "quantity": stock.quantity}})
    return stock


def delete_stock(db: Session, stock_id: int) -> None:
    stock = get_for_update(db, Stock, stock_id)
    if stock is None:
        raise NotFoundError("stock", stock_id)

    inventory = lock_inventory(db, stock.inventory_id)
    inventory.capacity += stock.quantity

    db.delete(stock)
    db.flush()
    logger.info(
        "Stock deleted",
        extra={"ctx": {"stock_id": stock_id, "inventory_id": inventory.id, "capacity": inventory.capacity}},
    )


# ---------- STOCK IN (purchase receipt) ----------
def stock_in(
    db: Session,
    purchase_order_id: int,
    deliveries: Iterable[Mapping[str, Any]],
    registry: posting.PostingRegistry | None = None,
    *,
    actor_id: int | None = None,
) -> dict[str, Any]:
    """
    Receive goods of a purchase order into stock.

    ``deliveries`` items: ``product_id``, ``delivered_quantity`` and optionally
    ``inventory_id`` (defaults to the order line's inventory).
    """
    po = get_for_update(db, PurchaseOrder, purchase_order_id)
    if po is None:
        logger.error("Purchase order not found", extra={"ctx": {"purchase_order_id": purchase_order_id}})
        raise NotFoundError("purchase order", purchase_order_id)

    if po.status not in RECEIVABLE_PO_STATUSES:
        raise StateConflictError(
            f"Cannot receive goods for a {po.status.value} purchase order",
            purchase_order_id=purchase_order_id,
        )

    deliveries = list(deliveries)
    if not deliveries:
        raise ValidationError("No delivered products given")

    # ---------- VALIDATE ----------
    planned: list[tuple[PurchaseOrderLine, int, int]] = []
    per_line: dict[int, int] = defaultdict(int)
    per_inventory: dict[int, int] = defaultdict(int)

    for item in deliveries:
        product_id = item.get("product_id")
        qty = _positive_quantity(item.get("delivered_quantity"), "delivered_quantity")

        line = next(
            (
                l
                for l in po.lines
                if l.product_id == product_id and l.remaining_quantity - per_line[l.id] > 0
            ),
            None,
        )
        if line is None:
            raise ValidationError(
                "Product is not outstanding on this purchase order",
                purchase_order_id=po.id,
                product_id=product_id,
            )

        per_line[line.id] += qty
        if per_line[line.id] > line.remaining_quantity:
            raise ValidationError(
                "Delivered quantity exceeds remaining quantity",
                product_id=product_id,
                remaining=line.remaining_quantity,
                delivered=per_line[line.id],
            )

        inventory_id = item.get("inventory_id") or line.inventory_id
        if inventory_id is None:
            raise ValidationError("No inventory given for delivered product", product_id=product_id)

        per_inventory[inventory_id] += qty
        planned.append((line, inventory_id, qty))

    inventories = {inv_id: lock_inventory(db, inv_id) for inv_id in sorted(per_inventory)}
    for inv_id, required in per_inventory.items():
        if required > inventories[inv_id].capacity:
            logger.error(
                "Insufficient inventory capacity for delivery",
                extra={"ctx": {"inventory_id": inv_id, "capacity": inventories[inv_id].capacity, "required": required}},
            )
            raise InsufficientCapacityError(inv_id, inventories[inv_id].capacity, required)

    # ---------- APPLY ----------
    stocks: list[Stock] = []
    delivered_value = ZERO
    for line, inventory_id, qty in planned:
        inventory = inventories[inventory_id]
        stock = find_stock_for_update(db, line.product_id, inventory_id)
        if stock is None:
            stock = Stock(
                product_id=line.product_id,
                inventory_id=inventory_id,
                quantity=qty,
                min_quantity=DEFAULT_MIN_QUANTITY,
                max_quantity=DEFAULT_MAX_QUANTITY,
                last_updated_by=actor_id,
            )
            db.add(stock)
        else:
            stock.quantity += qty
            stock.last_updated_by = actor_id
        refresh_stock_status(stock)

        inventory.capacity -= qty
        line.delivered_quantity += qty
        line.remaining_quantity -= qty
        delivered_value += (Decimal(line.total) / line.quantity * qty).quantize(CENT)

        db.flush()
        if stock not in stocks:
            stocks.append(stock)

    po.status = OrderStatus.delivered if po.total_remaining() == 0 else OrderStatus.shipped
    db.flush()

    logger.info(
        "Stock in completed",
        extra={
            "ctx": {
                "purchase_order_id": po.id,
                "status": po.status.value,
                "lines": len(planned),
                "value": str(delivered_value),
            }
        },
    )

    outcome = posting.post_best_effort(
        db,
        registry,
        journal_role=posting.PURCHASES_JOURNAL,
        debit_role=posting.PURCHASES_EXPENSE,
        credit_role=posting.ACCOUNTS_PAYABLE,
        amount=delivered_value,
        debit_description=f"Purchase of goods - PO {po.invoice_number or po.id}",
        credit_description=f"Payable to supplier {po.supplier_id}",
        reference=po.invoice_number,
        notes=f"Stock in for purchase order {po.id}",
    )
    return {"order": po, "stocks": stocks, "posting": outcome}


# ---------- STOCK OUT (sale fulfillment) ----------
def stock_out(
    db: Session,
    sale_order_id: int,
    registry: posting.PostingRegistry | None = None,
    *,
    actor_id: int | None = None,
) -> dict[str, Any]:
    so = get_for_update(db, SaleOrder, sale_order_id)
    if so is None:
        logger.error("Sale order not found", extra={"ctx": {"sale_order_id": sale_order_id}})
        raise NotFoundError("sale order", sale_order_id)

    if so.status in CLOSED_ORDER_STATUSES:
        raise StateConflictError(f"Sale order is already {so.status.value}", sale_order_id=sale_order_id)
    if not so.lines:
        raise ValidationError("Sale order has no lines", sale_order_id=sale_order_id)

    # ---------- VALIDATE ----------
    stocks: dict[int, Stock] = {}
    required: dict[int, int] = defaultdict(int)
    planned: list[tuple[Stock, int]] = []

    for line in so.lines:
        if line.inventory_id is None:
            raise ValidationError("Sale order line has no inventory", product_id=line.product_id)

        stock = find_stock_for_update(db, line.product_id, line.inventory_id)
        if stock is None:
            logger.error(
                "Stock not found for sold product",
                extra={"ctx": {"product_id": line.product_id, "inventory_id": line.inventory_id}},
            )
            raise NotFoundError("stock", f"product {line.product_id} in inventory {line.inventory_id}")

        stocks[stock.id] = stock
        required[stock.id] += line.quantity
        planned.append((stock, line.quantity))

    for stock_id, qty in required.items():
        stock = stocks[stock_id]
        if not stock.is_sufficient(qty):
            logger.error(
                "Insufficient stock",
                extra={"ctx": {"product_id": stock.product_id, "available": stock.quantity, "required": qty}},
            )
            raise InsufficientStockError(stock.product_id, stock.inventory_id, stock.quantity, qty)

    # ---------- APPLY ----------
    inventories = {
        inv_id: lock_inventory(db, inv_id) for inv_id in sorted({s.inventory_id for s in stocks.values()})
    }
    for stock, qty in planned:
        stock.quantity -= qty
        stock.last_updated_by = actor_id
        refresh_stock_status(stock)
        inventories[stock.inventory_id].capacity += qty

    so.status = OrderStatus.delivered
    db.flush()

    logger.info(
        "Stock out completed",
        extra={"ctx": {"sale_order_id": so.id, "lines": len(planned), "total": str(so.total_amount)}},
    )

    outcome = posting.post_best_effort(
        db,
        registry,
        journal_role=posting.SALES_JOURNAL,
        debit_role=posting.CASH,
        credit_role=posting.SALES_REVENUE,
        amount=so.total_amount,
        debit_description=f"Sale receipt - order {so.invoice_number or so.id}",
        credit_description="Sales revenue",
        reference=so.invoice_number,
        notes=f"Stock out for sale order {so.id}",
    )
    return {"order": so, "posting": outcome}
