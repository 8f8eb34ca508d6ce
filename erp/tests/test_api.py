from datetime import date

import pytest
from fastapi.testclient import TestClient

from erp.app.api.deps import get_db
from erp.app.db.models.core_types import BorrowerType
from erp.app.main import app
from erp.services import inventory as inventory_service


@pytest.fixture
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_duplicate_account_code_is_a_400(client):
    body = {"code": "cash", "name": "Cash", "type": "asset"}

    r = client.post("/v1/accounts", json=body)
    assert r.status_code == 201
    assert r.json()["code"] == "CASH"

    r = client.post("/v1/accounts", json=body)
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_journal_entry_post_and_conflicts(client):
    """
    GIVEN
    - two accounts and a journal created over HTTP

    THEN
    - an unbalanced entry is a 400 UNBALANCED_ENTRY
    - a draft entry posts once (200), then 409 ALREADY_POSTED
    - the account ledger reflects the posted line
    """
    a = client.post("/v1/accounts", json={"code": "1000", "name": "Cash", "type": "asset"}).json()
    b = client.post("/v1/accounts", json={"code": "4000", "name": "Sales", "type": "revenue"}).json()
    j = client.post("/v1/journals", json={"name": "General", "code": "GEN", "journal_type": "general"}).json()

    unbalanced = {
        "journal_id": j["id"],
        "lines": [{"account_id": a["id"], "debit": "10"}, {"account_id": b["id"], "credit": "9"}],
    }
    r = client.post("/v1/journal-entries", json=unbalanced)
    assert r.status_code == 400
    assert r.json()["code"] == "UNBALANCED_ENTRY"

    entry = client.post(
        "/v1/journal-entries",
        json={
            "journal_id": j["id"],
            "lines": [{"account_id": a["id"], "debit": "10"}, {"account_id": b["id"], "credit": "10"}],
        },
    ).json()
    assert entry["status"] == "draft"

    r = client.post(f"/v1/journal-entries/{entry['id']}/post")
    assert r.status_code == 200
    assert r.json()["status"] == "posted"

    r = client.post(f"/v1/journal-entries/{entry['id']}/post")
    assert r.status_code == 409
    assert r.json()["code"] == "ALREADY_POSTED"

    ledger_view = client.get(f"/v1/accounts/{a['id']}/ledger").json()
    assert ledger_view["account"]["amount"] == "10.00"
    assert ledger_view["balance"] == "10.00"


def test_transfer_flow_over_http(client, db_session, make_inventory, product, user, registry):
    inv1 = make_inventory(name="Inv1", capacity=60)
    inv2 = make_inventory(name="Inv2", capacity=50)
    inventory_service.create_stock(db_session, inventory_id=inv1.id, product_id=product.id, quantity=10)
    headers = {"X-User-Id": str(user.id)}

    r = client.post(
        "/v1/stock-transfers",
        json={"from_inventory_id": inv1.id, "to_inventory_id": inv2.id, "products": [{"product_id": product.id, "unit": 10}]},
        headers=headers,
    )
    assert r.status_code == 201
    transfer = r.json()
    assert transfer["created_by"] == user.id

    r = client.get(f"/v1/stock-transfers/{transfer['id']}/document")
    assert r.status_code == 409

    r = client.post(f"/v1/stock-transfers/{transfer['id']}/ship", json={"shipping_cost": "20"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["transfer"]["status"] == "shipping"
    assert r.json()["posting"]["posted"] is True

    r = client.post(f"/v1/stock-transfers/{transfer['id']}/ship")
    assert r.status_code == 409

    r = client.post(f"/v1/stock-transfers/{transfer['id']}/deliver")
    assert r.status_code == 200
    assert r.json()["status"] == "delivered"

    assert client.get(f"/v1/inventories/{inv1.id}").json()["capacity"] == 60
    assert client.get(f"/v1/inventories/{inv2.id}").json()["capacity"] == 40

    doc = client.get(f"/v1/stock-transfers/{transfer['id']}/document").json()
    assert doc["approved_by"]["name"] == user.name


def test_same_inventory_transfer_is_a_400(client, make_inventory, product):
    inv = make_inventory()

    r = client.post(
        "/v1/stock-transfers",
        json={"from_inventory_id": inv.id, "to_inventory_id": inv.id, "products": [{"product_id": product.id, "unit": 1}]},
    )
    assert r.status_code == 400


def test_loan_flow_over_http(client, org):
    r = client.post(
        "/v1/loans",
        json={
            "borrower_type": BorrowerType.organization.value,
            "borrower_id": org.id,
            "loan_amount": "300",
            "interest_rate": "0",
            "installment_number": 3,
            "start_date": date.today().isoformat(),
        },
    )
    assert r.status_code == 201
    loan = r.json()
    assert loan["status"] == "pending"

    r = client.post(f"/v1/loans/{loan['id']}/approve")
    assert r.status_code == 200
    approval = r.json()
    assert approval["loan"]["status"] == "active"
    assert len(approval["installments"]) == 3
    assert approval["posting"]["posted"] is False

    first = approval["installments"][0]["id"]
    r = client.post(f"/v1/loan-installments/{first}/pay", json={"payment_method": "bank_transfer"})
    assert r.status_code == 200
    assert r.json()["loan"]["remaining_balance"] == "200.00"
    assert r.json()["installment"]["payment_method"] == "bank_transfer"

    r = client.post(f"/v1/loan-installments/{first}/pay")
    assert r.status_code == 409

    summary = client.get(f"/v1/loans/{loan['id']}/summary").json()["summary"]
    assert summary["paid_installments"] == 1
    assert summary["pending_installments"] == 2


def test_missing_loan_is_a_404(client):
    r = client.get("/v1/loans/999999")
    assert r.status_code == 404
    assert r.json()["code"] == "NOT_FOUND"
    assert r.json()["data"] == {"entity": "loan", "id": 999999}


def test_stock_read_exposes_available_quantity(client, make_inventory, product):
    inv = make_inventory(capacity=100)

    r = client.post(
        "/v1/stocks",
        json={"inventory_id": inv.id, "product_id": product.id, "quantity": 25, "min_quantity": 10},
    )
    assert r.status_code == 201
    assert r.json()["available_quantity"] == 15

    r = client.get(f"/v1/stocks/{r.json()['id']}")
    assert r.json()["available_quantity"] == 15
