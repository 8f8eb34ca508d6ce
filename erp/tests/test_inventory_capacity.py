import pytest

from erp.app.db.models.core_types import StockStatus
from erp.services import inventory as inventory_service
from erp.errors import (
    InsufficientCapacityError,
    NotFoundError,
    ReferencedError,
    ValidationError,
)


def test_capacity_follows_stock_lifecycle(db_session, make_inventory, product):
    """
    GIVEN
    - inventory capacity=100

    THEN
    - create stock 30 -> capacity 70
    - update stock to 50 (delta +20) -> capacity 50
    - delete stock -> capacity back to 100
    """
    # ---------- ARRANGE ----------
    inv = make_inventory(capacity=100)

    # ---------- ACT / ASSERT ----------
    stock = inventory_service.create_stock(db_session, inventory_id=inv.id, product_id=product.id, quantity=30)
    assert inv.capacity == 70
    assert stock.status == StockStatus.in_stock

    inventory_service.update_stock(db_session, stock.id, quantity=50)
    assert inv.capacity == 50

    inventory_service.delete_stock(db_session, stock.id)
    db_session.refresh(inv)
    assert inv.capacity == 100


def test_lowering_quantity_gives_capacity_back(db_session, make_inventory, product):
    inv = make_inventory(capacity=100)
    stock = inventory_service.create_stock(db_session, inventory_id=inv.id, product_id=product.id, quantity=60)

    inventory_service.update_stock(db_session, stock.id, quantity=5)

    assert inv.capacity == 95
    assert stock.status == StockStatus.low_stock


def test_create_stock_beyond_capacity_is_rejected(db_session, make_inventory, product):
    inv = make_inventory(capacity=10)

    with pytest.raises(InsufficientCapacityError) as exc:
        inventory_service.create_stock(db_session, inventory_id=inv.id, product_id=product.id, quantity=11)

    assert exc.value.data == {"inventory_id": inv.id, "capacity": 10, "required": 11}
    assert inv.capacity == 10
    assert inventory_service.list_stocks(db_session, inventory_id=inv.id) == []


def test_update_stock_beyond_capacity_changes_nothing(db_session, make_inventory, product):
    inv = make_inventory(capacity=50)
    stock = inventory_service.create_stock(db_session, inventory_id=inv.id, product_id=product.id, quantity=40)

    with pytest.raises(InsufficientCapacityError):
        inventory_service.update_stock(db_session, stock.id, quantity=51)

    assert stock.quantity == 40
    assert inv.capacity == 10


def test_duplicate_stock_and_missing_rows(db_session, make_inventory, product):
    inv = make_inventory()
    inventory_service.create_stock(db_session, inventory_id=inv.id, product_id=product.id, quantity=1)

    with pytest.raises(ValidationError):
        inventory_service.create_stock(db_session, inventory_id=inv.id, product_id=product.id, quantity=1)
    with pytest.raises(NotFoundError):
        inventory_service.create_stock(db_session, inventory_id=999_999, product_id=product.id, quantity=1)
    with pytest.raises(NotFoundError):
        inventory_service.update_stock(db_session, 999_999, quantity=3)


def test_inventory_holding_stock_cannot_be_deleted(db_session, make_inventory, product):
    inv = make_inventory()
    stock = inventory_service.create_stock(db_session, inventory_id=inv.id, product_id=product.id, quantity=3)

    with pytest.raises(ReferencedError):
        inventory_service.delete_inventory(db_session, inv.id)

    inventory_service.delete_stock(db_session, stock.id)
    inventory_service.delete_inventory(db_session, inv.id)
    with pytest.raises(NotFoundError):
        inventory_service.get_inventory(db_session, inv.id)


@pytest.mark.parametrize(
    "quantity, expected",
    [
        (0, StockStatus.out_of_stock),
        (10, StockStatus.low_stock),
        (11, StockStatus.in_stock),
        (1000, StockStatus.overstock),
    ],
)
def test_derive_stock_status(quantity, expected):
    assert inventory_service.derive_stock_status(quantity, 10, 1000) == expected


def test_update_inventory_rejects_unknown_fields(db_session, make_inventory):
    inv = make_inventory()

    with pytest.raises(ValidationError):
        inventory_service.update_inventory(db_session, inv.id, id=42)

    updated = inventory_service.update_inventory(db_session, inv.id, capacity=500, name="North")
    assert updated.capacity == 500
    assert updated.name == "North"


def test_available_quantity_keeps_the_minimum_back(db_session, make_inventory, product):
    inv = make_inventory(capacity=100)
    stock = inventory_service.create_stock(
        db_session, inventory_id=inv.id, product_id=product.id, quantity=25, min_quantity=10
    )
    assert stock.available_quantity == 15

    inventory_service.update_stock(db_session, stock.id, quantity=4)
    assert stock.available_quantity == 0
