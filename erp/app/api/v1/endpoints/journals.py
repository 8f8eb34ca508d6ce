from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_db
from erp.app.schemas.ledger import JournalEntryRead, JournalRead
from erp.services import ledger

router = APIRouter(prefix="/journals")


class JournalCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    code: str = Field(min_length=1, max_length=32)
    journal_type: str = Field(min_length=1, max_length=64)


@router.get("", response_model=list[JournalRead])
def list_journals(db: Session = Depends(get_db)):
    return ledger.list_journals(db)


@router.post("", response_model=JournalRead, status_code=201)
def create_journal(payload: JournalCreate, db: Session = Depends(get_db)):
    journal = ledger.create_journal(db, **payload.model_dump())
    db.commit()
    db.refresh(journal)
    return journal


@router.get("/{journal_id}", response_model=JournalRead)
def get_journal(journal_id: int, db: Session = Depends(get_db)):
    return ledger.get_journal(db, journal_id)


@router.get("/{journal_id}/entries", response_model=list[JournalEntryRead])
def list_journal_entries(journal_id: int, db: Session = Depends(get_db)):
    return ledger.journal_entries(db, journal_id)


@router.delete("/{journal_id}", status_code=204)
def delete_journal(journal_id: int, db: Session = Depends(get_db)):
    ledger.delete_journal(db, journal_id)
    db.commit()
