from decimal import Decimal

import pytest

from erp.app.db.models.core_types import TransferStatus
from erp.app.db.models.models_v1 import JournalEntry
from erp.services import inventory as inventory_service
from erp.services import transfers
from erp.errors import (
    InsufficientCapacityError,
    InsufficientStockError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)


@pytest.fixture
def two_sites(db_session, make_inventory, product):
    """Inv1 (capacity 50 after holding 10 units of product) and an empty Inv2 (capacity 50)."""
    inv1 = make_inventory(name="Inv1", capacity=60)
    inv2 = make_inventory(name="Inv2", capacity=50)
    stock = inventory_service.create_stock(db_session, inventory_id=inv1.id, product_id=product.id, quantity=10)
    assert inv1.capacity == 50
    return inv1, inv2, stock


def test_transfer_ship_then_deliver(db_session, two_sites, product, user):
    """
    GIVEN
    - Inv1[cap=50] with 10 x P1, Inv2[cap=50]
    - transfer of 10 x P1 from Inv1 to Inv2

    THEN
    - ship: Inv1.capacity == 60, stock@Inv1 == 0
    - deliver: Inv2.capacity == 40, stock@Inv2 == 10
    - shipping again is a state conflict
    """
    inv1, inv2, stock = two_sites

    # ---------- ARRANGE ----------
    transfer = transfers.create_transfer(
        db_session,
        from_inventory_id=inv1.id,
        to_inventory_id=inv2.id,
        products=[{"product_id": product.id, "unit": 10}],
        created_by=user.id,
    )
    assert transfer.status == TransferStatus.draft
    assert transfer.reference.startswith("TR-")

    # ---------- ACT: ship ----------
    shipped = transfers.ship_transfer(db_session, transfer.id, actor_id=user.id)

    assert shipped["transfer"].status == TransferStatus.shipping
    assert shipped["transfer"].approved_by == user.id
    assert inv1.capacity == 60
    assert stock.quantity == 0
    assert shipped["posting"].posted is False

    # ---------- ACT: deliver ----------
    delivered = transfers.deliver_transfer(db_session, transfer.id, actor_id=user.id)

    assert delivered.status == TransferStatus.delivered
    assert inv2.capacity == 40
    landed = inventory_service.list_stocks(db_session, inventory_id=inv2.id, product_id=product.id)
    assert [s.quantity for s in landed] == [10]

    with pytest.raises(StateConflictError):
        transfers.ship_transfer(db_session, transfer.id)


def test_same_inventory_transfer_is_invalid(db_session, two_sites, product):
    inv1, _, _ = two_sites

    with pytest.raises(ValidationError):
        transfers.create_transfer(
            db_session,
            from_inventory_id=inv1.id,
            to_inventory_id=inv1.id,
            products=[{"product_id": product.id, "unit": 1}],
        )


def test_transfer_needs_enough_source_stock(db_session, two_sites, product, other_product):
    inv1, inv2, _ = two_sites

    with pytest.raises(InsufficientStockError):
        transfers.create_transfer(
            db_session,
            from_inventory_id=inv1.id,
            to_inventory_id=inv2.id,
            products=[{"product_id": product.id, "unit": 11}],
        )
    with pytest.raises(NotFoundError):
        transfers.create_transfer(
            db_session,
            from_inventory_id=inv1.id,
            to_inventory_id=inv2.id,
            products=[{"product_id": other_product.id, "unit": 1}],
        )


def test_ship_revalidates_stock(db_session, two_sites, product):
    inv1, inv2, stock = two_sites
    transfer = transfers.create_transfer(
        db_session,
        from_inventory_id=inv1.id,
        to_inventory_id=inv2.id,
        products=[{"product_id": product.id, "unit": 8}],
    )
    inventory_service.update_stock(db_session, stock.id, quantity=5)

    with pytest.raises(InsufficientStockError):
        transfers.ship_transfer(db_session, transfer.id)

    assert transfer.status == TransferStatus.draft
    assert stock.quantity == 5


def test_deliver_requires_destination_capacity(db_session, make_inventory, product):
    inv1 = make_inventory(name="Big", capacity=100)
    tiny = make_inventory(name="Tiny", capacity=5)
    inventory_service.create_stock(db_session, inventory_id=inv1.id, product_id=product.id, quantity=20)
    transfer = transfers.create_transfer(
        db_session,
        from_inventory_id=inv1.id,
        to_inventory_id=tiny.id,
        products=[{"product_id": product.id, "unit": 10}],
    )
    transfers.ship_transfer(db_session, transfer.id)

    with pytest.raises(InsufficientCapacityError):
        transfers.deliver_transfer(db_session, transfer.id)

    assert transfer.status == TransferStatus.shipping
    assert tiny.capacity == 5


def test_deliver_and_document_need_the_right_state(db_session, two_sites, product):
    inv1, inv2, _ = two_sites
    transfer = transfers.create_transfer(
        db_session,
        from_inventory_id=inv1.id,
        to_inventory_id=inv2.id,
        products=[{"product_id": product.id, "unit": 2}],
    )

    with pytest.raises(StateConflictError):
        transfers.deliver_transfer(db_session, transfer.id)
    with pytest.raises(StateConflictError):
        transfers.transfer_document(db_session, transfer.id)

    transfers.ship_transfer(db_session, transfer.id)
    transfers.deliver_transfer(db_session, transfer.id)
    doc = transfers.transfer_document(db_session, transfer.id)

    assert doc["from"]["name"] == "Inv1"
    assert doc["to"]["name"] == "Inv2"
    assert doc["products"] == [
        {"product_id": product.id, "name": product.name, "code": product.code, "price": product.price, "unit": 2}
    ]


def test_shipping_cost_is_booked_as_expense(db_session, two_sites, product, registry):
    inv1, inv2, _ = two_sites
    transfer = transfers.create_transfer(
        db_session,
        from_inventory_id=inv1.id,
        to_inventory_id=inv2.id,
        products=[{"product_id": product.id, "unit": 1}],
    )

    result = transfers.ship_transfer(db_session, transfer.id, shipping_cost=Decimal("15"), registry=registry)

    assert result["transfer"].shipping_cost == Decimal("15.00")
    entry = db_session.get(JournalEntry, result["posting"].entry_id)
    assert entry.lines[0].account_id == registry.account_id("shipping-expense-account")
    assert entry.lines[1].account_id == registry.account_id("cash-account")
    assert entry.totals() == (Decimal("15.00"), Decimal("15.00"))


def test_draft_transfer_can_be_updated_or_cancelled(db_session, two_sites, product):
    inv1, inv2, stock = two_sites
    transfer = transfers.create_transfer(
        db_session,
        from_inventory_id=inv1.id,
        to_inventory_id=inv2.id,
        products=[{"product_id": product.id, "unit": 2}],
    )

    transfers.update_transfer(db_session, transfer.id, products=[{"product_id": product.id, "unit": 7}], notes="more")
    db_session.refresh(transfer)
    assert [l.unit for l in transfer.lines] == [7]

    transfers.cancel_transfer(db_session, transfer.id)
    assert transfer.status == TransferStatus.cancelled
    assert stock.quantity == 10

    with pytest.raises(StateConflictError):
        transfers.ship_transfer(db_session, transfer.id)
    with pytest.raises(StateConflictError):
        transfers.update_transfer(db_session, transfer.id, notes="again")
