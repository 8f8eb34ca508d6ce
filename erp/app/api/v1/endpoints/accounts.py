from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_db
from erp.app.db.models.core_types import AccountType, Currency
from erp.app.schemas.ledger import AccountLedgerRead, AccountRead
from erp.services import ledger

router = APIRouter(prefix="/accounts")


class AccountCreate(BaseModel):
    code: str = Field(min_length=1, max_length=32)
    name: str = Field(min_length=1, max_length=200)
    type: AccountType
    currency: Currency = Currency.EGP
    amount: Decimal = Decimal("0")
    parent_account_id: int | None = None
    subtype: str | None = None
    description: str | None = None


class AccountUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    subtype: str | None = None
    description: str | None = None
    is_active: bool | None = None
    parent_account_id: int | None = None
    currency: Currency | None = None


@router.get("", response_model=list[AccountRead])
def list_accounts(active_only: bool = True, db: Session = Depends(get_db)):
    return ledger.list_accounts(db, active_only=active_only)


@router.post("", response_model=AccountRead, status_code=201)
def create_account(payload: AccountCreate, db: Session = Depends(get_db)):
    account = ledger.create_account(db, **payload.model_dump())
    db.commit()
    db.refresh(account)
    return account


@router.get("/{account_id}", response_model=AccountRead)
def get_account(account_id: int, db: Session = Depends(get_db)):
    return ledger.get_account(db, account_id)


@router.get("/{account_id}/ledger", response_model=AccountLedgerRead)
def get_account_ledger(account_id: int, db: Session = Depends(get_db)):
    return ledger.account_ledger(db, account_id)


@router.patch("/{account_id}", response_model=AccountRead)
def update_account(account_id: int, payload: AccountUpdate, db: Session = Depends(get_db)):
    account = ledger.update_account(db, account_id, **payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(account)
    return account


@router.delete("/{account_id}", status_code=204)
def delete_account(account_id: int, db: Session = Depends(get_db)):
    ledger.delete_account(db, account_id)
    db.commit()
