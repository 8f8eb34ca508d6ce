"""
Stock transfers between two inventories.

    draft --ship--> shipping --deliver--> delivered
    draft --cancel--> cancelled

Shipping takes the goods out of the source (stock down, capacity up);
delivery puts them into the destination (stock up, capacity down).
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp.app.db.models.core_types import TransferStatus
from erp.app.db.models.models_v1 import (
    Inventory,
    Product,
    Stock,
    StockTransfer,
    StockTransferLine,
    User,
)
from erp.services import posting
from erp.services._db import get_for_update
from erp.errors import (
    InsufficientCapacityError,
    InsufficientStockError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from erp.services.inventory import (
    DEFAULT_MAX_QUANTITY,
    DEFAULT_MIN_QUANTITY,
    find_stock_for_update,
    lock_inventory,
    refresh_stock_status,
)
from erp.services.ledger import ZERO, to_money

logger = logging.getLogger(__name__)


def _next_reference(db: Session) -> str:
    count = db.execute(select(func.count(StockTransfer.id))).scalar_one()
    return f"TR-{int(time.time() * 1000)}-{count + 1}"


def _lock_transfer(db: Session, transfer_id: int) -> StockTransfer:
    transfer = get_for_update(db, StockTransfer, transfer_id)
    if transfer is None:
        logger.error("Transfer not found", extra={"ctx": {"transfer_id": transfer_id}})
        raise NotFoundError("transfer", transfer_id)
    return transfer


def _units_by_product(lines: Iterable[Any]) -> dict[int, int]:
    units: dict[int, int] = defaultdict(int)
    for line in lines:
        units[line.product_id] += line.unit
    return units


def _check_source_stock(db: Session, inventory_id: int, units: Mapping[int, int]) -> dict[int, Stock]:
    stocks = {}
    for product_id, required in units.items():
        stock = find_stock_for_update(db, product_id, inventory_id)
        if stock is None:
            logger.error(
                "Stock not found in source inventory",
                extra={"ctx": {"product_id": product_id, "inventory_id": inventory_id}},
            )
            raise NotFoundError("stock", f"product {product_id} in inventory {inventory_id}")
        if not stock.is_sufficient(required):
            logger.error(
                "Insufficient stock for transfer",
                extra={"ctx": {"product_id": product_id, "available": stock.quantity, "required": required}},
            )
            raise InsufficientStockError(product_id, inventory_id, stock.quantity, required)
        stocks[product_id] = stock
    return stocks


def _build_lines(db: Session, products: Iterable[Mapping[str, Any]]) -> list[StockTransferLine]:
    lines = []
    for raw in products:
        product = db.get(Product, raw.get("product_id"))
        if product is None:
            raise NotFoundError("product", raw.get("product_id"))

        unit = raw.get("unit")
        if not isinstance(unit, int) or unit < 1:
            raise ValidationError("Transfer unit must be at least 1", product_id=product.id, unit=unit)

        lines.append(
            StockTransferLine(
                product_id=product.id,
                unit=unit,
                name=raw.get("name") or product.name,
                code=raw.get("code") or product.code,
            )
        )
    if not lines:
        raise ValidationError("A transfer needs at least one product")
    return lines


def create_transfer(
    db: Session,
    *,
    from_inventory_id: int,
    to_inventory_id: int,
    products: Iterable[Mapping[str, Any]],
    created_by: int | None = None,
    reference: str | None = None,
    shipping_cost: Decimal | int = 0,
    notes: str | None = None,
) -> StockTransfer:
    ctx = {"from": from_inventory_id, "to": to_inventory_id}
    logger.info("Creating stock transfer", extra={"ctx": ctx})

    if from_inventory_id == to_inventory_id:
        logger.error("Source and destination inventories are the same", extra={"ctx": ctx})
        raise ValidationError("Source and destination inventories must be different", **ctx)

    for inventory_id in (from_inventory_id, to_inventory_id):
        if db.get(Inventory, inventory_id) is None:
            raise NotFoundError("inventory", inventory_id)

    shipping_cost = to_money(shipping_cost)
    if shipping_cost < 0:
        raise ValidationError("Shipping cost must not be negative")

    lines = _build_lines(db, products)
    _check_source_stock(db, from_inventory_id, _units_by_product(lines))

    reference = reference or _next_reference(db)
    if db.execute(select(StockTransfer.id).where(StockTransfer.reference == reference)).scalar_one_or_none():
        raise ValidationError("Transfer reference already exists", reference=reference)

    transfer = StockTransfer(
        reference=reference,
        status=TransferStatus.draft,
        from_inventory_id=from_inventory_id,
        to_inventory_id=to_inventory_id,
        shipping_cost=shipping_cost,
        notes=notes,
        created_by=created_by,
    )
    transfer.lines.extend(lines)
    db.add(transfer)
    db.flush()

    logger.info(
        "Stock transfer created",
        extra={"ctx": {**ctx, "transfer_id": transfer.id, "reference": reference, "lines": len(lines)}},
    )
    return transfer


def get_transfer(db: Session, transfer_id: int) -> StockTransfer:
    transfer = db.get(StockTransfer, transfer_id)
    if not transfer:
        raise NotFoundError("transfer", transfer_id)
    return transfer


def list_transfers(db: Session, *, status: TransferStatus | None = None) -> list[StockTransfer]:
    stmt = select(StockTransfer).order_by(StockTransfer.id.desc())
    if status is not None:
        stmt = stmt.where(StockTransfer.status == status)
    return list(db.execute(stmt).scalars().all())


def update_transfer(
    db: Session,
    transfer_id: int,
    *,
    products: Iterable[Mapping[str, Any]] | None = None,
    shipping_cost: Decimal | int | None = None,
    notes: str | None = None,
) -> StockTransfer:
    transfer = _lock_transfer(db, transfer_id)
    if transfer.status != TransferStatus.draft:
        raise StateConflictError("Only draft transfers can be updated", transfer_id=transfer_id)

    if shipping_cost is not None:
        shipping_cost = to_money(shipping_cost)
        if shipping_cost < 0:
            raise ValidationError("Shipping cost must not be negative")
        transfer.shipping_cost = shipping_cost
    if notes is not None:
        transfer.notes = notes

    if products is not None:
        lines = _build_lines(db, products)
        _check_source_stock(db, transfer.from_inventory_id, _units_by_product(lines))
        transfer.lines.clear()
        db.flush()
        transfer.lines.extend(lines)

    db.flush()
    logger.info("Stock transfer updated", extra={"ctx": {"transfer_id": transfer_id}})
    return transfer


def cancel_transfer(db: Session, transfer_id: int) -> StockTransfer:
    transfer = _lock_transfer(db, transfer_id)
    if transfer.status != TransferStatus.draft:
        raise StateConflictError("Only draft transfers can be cancelled", transfer_id=transfer_id)

    transfer.status = TransferStatus.cancelled
    db.flush()
    logger.info("Stock transfer cancelled", extra={"ctx": {"transfer_id": transfer_id}})
    return transfer


def ship_transfer(
    db: Session,
    transfer_id: int,
    *,
    shipping_cost: Decimal | int | None = None,
    actor_id: int | None = None,
    registry: posting.PostingRegistry | None = None,
) -> dict[str, Any]:
    logger.info("Shipping stock transfer", extra={"ctx": {"transfer_id": transfer_id}})
    transfer = _lock_transfer(db, transfer_id)

    if not transfer.can_ship():
        logger.error(
            "Transfer cannot be shipped",
            extra={"ctx": {"transfer_id": transfer_id, "status": transfer.status.value}},
        )
        raise StateConflictError("Only draft transfers can be shipped", transfer_id=transfer_id)

    cost = to_money(shipping_cost) if shipping_cost is not None else to_money(transfer.shipping_cost)
    if cost < 0:
        raise ValidationError("Shipping cost must not be negative")

    units = _units_by_product(transfer.lines)
    stocks = _check_source_stock(db, transfer.from_inventory_id, units)
    source = lock_inventory(db, transfer.from_inventory_id)

    for product_id, unit in units.items():
        stock = stocks[product_id]
        stock.quantity -= unit
        stock.last_updated_by = actor_id
        refresh_stock_status(stock)
    source.capacity += sum(units.values())

    transfer.status = TransferStatus.shipping
    transfer.approved_by = actor_id
    transfer.shipping_cost = cost
    transfer.shipped_at = datetime.now(timezone.utc)
    db.flush()

    logger.info(
        "Stock transfer shipped",
        extra={"ctx": {"transfer_id": transfer_id, "units": sum(units.values()), "shipping_cost": str(cost)}},
    )

    outcome = posting.PostingOutcome.skipped("no shipping cost")
    if cost > ZERO:
        outcome = posting.post_best_effort(
            db,
            registry,
            journal_role=posting.EXPENSES_JOURNAL,
            debit_role=posting.SHIPPING_EXPENSE,
            credit_role=posting.CASH,
            amount=cost,
            debit_description=f"Shipping cost {cost} for stock transfer {transfer.reference}",
            credit_description=f"Cash paid {cost} for shipping",
            reference=transfer.reference,
        )
    return {"transfer": transfer, "posting": outcome}


def deliver_transfer(db: Session, transfer_id: int, *, actor_id: int | None = None) -> StockTransfer:
    logger.info("Delivering stock transfer", extra={"ctx": {"transfer_id": transfer_id}})
    transfer = _lock_transfer(db, transfer_id)

    if not transfer.can_deliver():
        logger.error(
            "Transfer cannot be delivered",
            extra={"ctx": {"transfer_id": transfer_id, "status": transfer.status.value}},
        )
        raise StateConflictError("Only shipping transfers can be delivered", transfer_id=transfer_id)

    units = _units_by_product(transfer.lines)
    total = sum(units.values())
    destination = lock_inventory(db, transfer.to_inventory_id)
    if destination.capacity < total:
        logger.error(
            "Insufficient capacity in destination",
            extra={"ctx": {"inventory_id": destination.id, "capacity": destination.capacity, "required": total}},
        )
        raise InsufficientCapacityError(destination.id, destination.capacity, total)

    for product_id, unit in units.items():
        stock = find_stock_for_update(db, product_id, destination.id)
        if stock is None:
            stock = Stock(
                product_id=product_id,
                inventory_id=destination.id,
                quantity=unit,
                min_quantity=DEFAULT_MIN_QUANTITY,
                max_quantity=DEFAULT_MAX_QUANTITY,
                last_updated_by=actor_id,
            )
            db.add(stock)
        else:
            stock.quantity += unit
            stock.last_updated_by = actor_id
        refresh_stock_status(stock)
    destination.capacity -= total

    transfer.status = TransferStatus.delivered
    transfer.delivered_at = datetime.now(timezone.utc)
    db.flush()

    logger.info("Transfer delivered successfully", extra={"ctx": {"transfer_id": transfer_id, "units": total}})
    return transfer


def transfer_document(db: Session, transfer_id: int) -> dict[str, Any]:
    """Printable delivery note; only delivered transfers have one."""
    transfer = get_transfer(db, transfer_id)
    if transfer.status != TransferStatus.delivered:
        logger.error(
            "Transfer not delivered",
            extra={"ctx": {"transfer_id": transfer_id, "status": transfer.status.value}},
        )
        raise StateConflictError("Transfer must be delivered to generate document", transfer_id=transfer_id)

    def _user(user_id):
        user = db.get(User, user_id) if user_id is not None else None
        return {"id": user.id, "name": user.name, "email": user.email} if user else None

    products = []
    for line in transfer.lines:
        product = db.get(Product, line.product_id)
        products.append(
            {
                "product_id": line.product_id,
                "name": product.name if product else line.name,
                "code": product.code if product else line.code,
                "price": product.price if product else None,
                "unit": line.unit,
            }
        )

    logger.info("Transfer document fetched", extra={"ctx": {"transfer_id": transfer_id}})
    return {
        "id": transfer.id,
        "reference": transfer.reference,
        "status": transfer.status,
        "from": {"id": transfer.from_inventory.id, "name": transfer.from_inventory.name, "location": transfer.from_inventory.location},
        "to": {"id": transfer.to_inventory.id, "name": transfer.to_inventory.name, "location": transfer.to_inventory.location},
        "products": products,
        "shipping_cost": transfer.shipping_cost,
        "created_by": _user(transfer.created_by),
        "approved_by": _user(transfer.approved_by),
        "shipped_at": transfer.shipped_at,
        "delivered_at": transfer.delivered_at,
    }
