from decimal import Decimal

import pytest
from sqlalchemy.orm import Session, sessionmaker

from erp.app.db.base import Base
from erp.app.db.models import models_v1  # noqa: F401  (registers tables)
from erp.app.db.models.core_types import Role
from erp.app.db.models.models_v1 import Customer, Organization, Product, Supplier, User
from erp.app.db.seed import seed_ledger
from erp.app.db.session import build_engine
from erp.services import inventory as inventory_service
from erp.services.posting import PostingRegistry

engine = build_engine("sqlite://")
Base.metadata.create_all(bind=engine)

TestingSession = sessionmaker(autoflush=False, autocommit=False, join_transaction_mode="create_savepoint")


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Isolated session per test.

    One enclosing transaction per test; session.commit() only releases a
    SAVEPOINT, so EVERYTHING is rolled back at the end, even after commit().
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSession(bind=connection)

    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


# ---------- master data ----------
@pytest.fixture
def org(db_session):
    org = Organization(trade_name="Acme Trading", email="finance@acme.test")
    db_session.add(org)
    db_session.flush()
    return org


@pytest.fixture
def user(db_session, org):
    user = User(organization_id=org.id, name="Mona", email="mona@acme.test", role=Role.manager)
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture
def product(db_session):
    product = Product(code="P-001", name="Olive oil 1L", price=Decimal("12.50"))
    db_session.add(product)
    db_session.flush()
    return product


@pytest.fixture
def other_product(db_session):
    product = Product(code="P-002", name="Rice 5kg", price=Decimal("8.00"))
    db_session.add(product)
    db_session.flush()
    return product


@pytest.fixture
def supplier(db_session):
    supplier = Supplier(name="Delta Foods")
    db_session.add(supplier)
    db_session.flush()
    return supplier


@pytest.fixture
def customer(db_session):
    customer = Customer(name="Corner Market", email="orders@corner.test")
    db_session.add(customer)
    db_session.flush()
    return customer


@pytest.fixture
def make_inventory(db_session):
    def _make(name="Main warehouse", capacity=1000):
        return inventory_service.create_inventory(db_session, name=name, location="Cairo", capacity=capacity)

    return _make


# ---------- ledger ----------
@pytest.fixture
def registry(db_session) -> PostingRegistry:
    """Default chart of accounts and journals, fully mapped."""
    seed_ledger(db_session)
    return PostingRegistry.load(db_session)
