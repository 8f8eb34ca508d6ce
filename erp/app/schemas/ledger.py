from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel

from erp.app.db.models.core_types import AccountType, Currency, EntryStatus


class PostingOutcomeRead(BaseModel):
    posted: bool
    entry_id: int | None = None
    reason: str | None = None

    class Config:
        from_attributes = True


class AccountRead(BaseModel):
    id: int
    code: str
    name: str
    type: AccountType
    subtype: str | None = None
    description: str | None = None
    amount: Decimal  # running balance, debit adds / credit subtracts
    currency: Currency
    is_active: bool
    parent_account_id: int | None = None

    class Config:
        from_attributes = True


class JournalRead(BaseModel):
    id: int
    name: str
    code: str
    journal_type: str

    class Config:
        from_attributes = True


class JournalEntryLineRead(BaseModel):
    line_no: int
    account_id: int
    description: str | None = None
    debit: Decimal
    credit: Decimal

    class Config:
        from_attributes = True


class JournalEntryRead(BaseModel):
    id: int
    journal_id: int
    entry_date: date
    reference: str | None = None
    notes: str | None = None
    status: EntryStatus
    posted_at: datetime | None = None
    lines: list[JournalEntryLineRead]

    class Config:
        from_attributes = True


class LedgerLineRead(BaseModel):
    journal_entry_id: int
    date: date
    reference: str | None = None
    status: EntryStatus
    description: str | None = None
    debit: Decimal
    credit: Decimal
    journal_name: str


class AccountLedgerRead(BaseModel):
    account: AccountRead
    entries: list[LedgerLineRead]
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal
