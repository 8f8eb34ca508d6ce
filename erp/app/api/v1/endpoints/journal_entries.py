from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_db
from erp.app.db.models.core_types import EntryStatus
from erp.app.schemas.ledger import JournalEntryRead
from erp.services import ledger

router = APIRouter(prefix="/journal-entries")


class EntryLineIn(BaseModel):
    account_id: int
    description: str | None = Field(default=None, max_length=500)
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)


class EntryCreate(BaseModel):
    journal_id: int
    lines: list[EntryLineIn] = Field(min_length=1)
    status: EntryStatus = EntryStatus.draft
    entry_date: date | None = None
    reference: str | None = Field(default=None, max_length=128)
    notes: str | None = None


class EntryUpdate(BaseModel):
    journal_id: int | None = None
    lines: list[EntryLineIn] | None = None
    entry_date: date | None = None
    reference: str | None = Field(default=None, max_length=128)
    notes: str | None = None


@router.get("", response_model=list[JournalEntryRead])
def list_entries(status: EntryStatus | None = None, db: Session = Depends(get_db)):
    return ledger.list_journal_entries(db, status=status)


@router.post("", response_model=JournalEntryRead, status_code=201)
def create_entry(payload: EntryCreate, db: Session = Depends(get_db)):
    entry = ledger.create_journal_entry(
        db,
        payload.journal_id,
        [ln.model_dump() for ln in payload.lines],
        status=payload.status,
        entry_date=payload.entry_date,
        reference=payload.reference,
        notes=payload.notes,
    )
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/{entry_id}", response_model=JournalEntryRead)
def get_entry(entry_id: int, db: Session = Depends(get_db)):
    return ledger.get_journal_entry(db, entry_id)


@router.post("/{entry_id}/post", response_model=JournalEntryRead)
def post_entry(entry_id: int, db: Session = Depends(get_db)):
    entry = ledger.post_journal_entry(db, entry_id)
    db.commit()
    db.refresh(entry)
    return entry


@router.post("/{entry_id}/void", response_model=JournalEntryRead)
def void_entry(entry_id: int, db: Session = Depends(get_db)):
    entry = ledger.void_journal_entry(db, entry_id)
    db.commit()
    db.refresh(entry)
    return entry


@router.patch("/{entry_id}", response_model=JournalEntryRead)
def update_entry(entry_id: int, payload: EntryUpdate, db: Session = Depends(get_db)):
    fields = payload.model_dump(exclude_unset=True)
    entry = ledger.update_journal_entry(db, entry_id, **fields)
    db.commit()
    db.refresh(entry)
    return entry


@router.delete("/{entry_id}", status_code=204)
def delete_entry(entry_id: int, db: Session = Depends(get_db)):
    ledger.delete_journal_entry(db, entry_id)
    db.commit()
