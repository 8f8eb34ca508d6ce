"""
Ledger store and journal entry engine.

Accounts keep a single running ``amount``. Posting an entry applies each line
as ``amount += debit - credit`` whatever the account type; this mirrors how the
balances have always been kept and is not a normal-balance aware ledger.

Nothing here commits: callers own the transaction.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp.app.db.models.core_types import AccountType, Currency, EntryStatus
from erp.app.db.models.models_v1 import (
    Account,
    Journal,
    JournalEntry,
    JournalEntryLine,
)
from erp.services._db import get_for_update
from erp.errors import (
    EntryAlreadyPostedError,
    NotFoundError,
    ReferencedError,
    StateConflictError,
    UnbalancedEntryError,
    ValidationError,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

ACCOUNT_UPDATABLE = {"name", "subtype", "description", "is_active", "parent_account_id", "currency"}


def to_money(value: Any) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0)).quantize(CENT)
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {value!r}")


# ---------- ACCOUNTS ----------
def create_account(
    db: Session,
    *,
    code: str,
    name: str,
    type: AccountType,
    currency: Currency = Currency.EGP,
    amount: Decimal | int = 0,
    parent_account_id: int | None = None,
    subtype: str | None = None,
    description: str | None = None,
) -> Account:
    code = code.strip().upper()
    logger.info("Creating new account", extra={"ctx": {"name": name, "code": code}})

    exists = db.execute(select(Account.id).where(Account.code == code)).scalar_one_or_none()
    if exists:
        logger.error("Account code already exists", extra={"ctx": {"code": code}})
        raise ValidationError("Account code already exists", code=code)

    if parent_account_id is not None and db.get(Account, parent_account_id) is None:
        raise NotFoundError("account", parent_account_id)

    account = Account(
        code=code,
        name=name.strip(),
        type=AccountType(type),
        currency=Currency(currency),
        amount=to_money(amount),
        parent_account_id=parent_account_id,
        subtype=subtype,
        description=description,
    )
    db.add(account)
    db.flush()

    logger.info("Account created successfully", extra={"ctx": {"account_id": account.id, "code": code}})
    return account


def get_account(db: Session, account_id: int) -> Account:
    account = db.get(Account, account_id)
    if not account:
        raise NotFoundError("account", account_id)
    return account


def list_accounts(db: Session, *, active_only: bool = True) -> list[Account]:
    stmt = select(Account).order_by(Account.code)
    if active_only:
        stmt = stmt.where(Account.is_active.is_(True))
    return list(db.execute(stmt).scalars().all())


def update_account(db: Session, account_id: int, **fields: Any) -> Account:
    account = get_account(db, account_id)

    unknown = set(fields) - ACCOUNT_UPDATABLE
    if unknown:
        raise ValidationError(f"Account fields cannot be updated: {', '.join(sorted(unknown))}")

    parent_id = fields.get("parent_account_id")
    if parent_id is not None:
        if parent_id == account.id:
            raise ValidationError("An account cannot be its own parent")
        get_account(db, parent_id)

    for key, value in fields.items():
        setattr(account, key, value)
    db.flush()

    logger.info("Account updated", extra={"ctx": {"account_id": account_id, "fields": sorted(fields)}})
    return account


def delete_account(db: Session, account_id: int) -> None:
    account = get_account(db, account_id)

    line_count = db.execute(
        select(func.count(JournalEntryLine.id)).where(JournalEntryLine.account_id == account_id)
    ).scalar_one()
    if line_count:
        logger.error(
            "Cannot delete account with journal entries",
            extra={"ctx": {"account_id": account_id, "lines": line_count}},
        )
        raise ReferencedError("Cannot delete account with existing journal entries", account_id=account_id)

    db.delete(account)
    db.flush()
    logger.info("Account deleted", extra={"ctx": {"account_id": account_id}})


def account_ledger(db: Session, account_id: int) -> dict[str, Any]:
    """Every journal line touching the account, with running totals."""
    account = get_account(db, account_id)

    rows = db.execute(
        select(JournalEntryLine, JournalEntry, Journal)
        .join(JournalEntry, JournalEntry.id == JournalEntryLine.entry_id)
        .join(Journal, Journal.id == JournalEntry.journal_id)
        .where(JournalEntryLine.account_id == account_id)
        .order_by(JournalEntry.entry_date, JournalEntry.id, JournalEntryLine.line_no)
    ).all()

    total_debit = ZERO
    total_credit = ZERO
    entries = []
    for line, entry, journal in rows:
        total_debit += line.debit
        total_credit += line.credit
        entries.append(
            {
                "journal_entry_id": entry.id,
                "date": entry.entry_date,
                "reference": entry.reference,
                "status": entry.status,
                "description": line.description,
                "debit": line.debit,
                "credit": line.credit,
                "journal_name": journal.name,
            }
        )

    return {
        "account": account,
        "entries": entries,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "balance": total_debit - total_credit,
    }


# ---------- JOURNALS ----------
def create_journal(db: Session, *, name: str, code: str, journal_type: str) -> Journal:
    logger.info("Creating new journal", extra={"ctx": {"name": name, "journal_type": journal_type}})

    if db.execute(select(Journal.id).where(Journal.code == code)).scalar_one_or_none():
        logger.error("Journal code already exists", extra={"ctx": {"code": code}})
        raise ValidationError("Journal code already exists", code=code)

    journal = Journal(name=name.strip(), code=code.strip(), journal_type=journal_type.strip())
    db.add(journal)
    db.flush()
    return journal


def get_journal(db: Session, journal_id: int) -> Journal:
    journal = db.get(Journal, journal_id)
    if not journal:
        raise NotFoundError("journal", journal_id)
    return journal


def list_journals(db: Session) -> list[Journal]:
    return list(db.execute(select(Journal).order_by(Journal.code)).scalars().all())


def journal_entries(db: Session, journal_id: int) -> list[JournalEntry]:
    get_journal(db, journal_id)
    return list(
        db.execute(
            select(JournalEntry)
            .where(JournalEntry.journal_id == journal_id)
            .order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc())
        )
        .scalars()
        .all()
    )


def delete_journal(db: Session, journal_id: int) -> None:
    journal = get_journal(db, journal_id)

    count = db.execute(
        select(func.count(JournalEntry.id)).where(JournalEntry.journal_id == journal_id)
    ).scalar_one()
    if count:
        logger.error("Cannot delete journal with entries", extra={"ctx": {"journal_id": journal_id, "entries": count}})
        raise ReferencedError("Cannot delete journal with existing entries", journal_id=journal_id)

    db.delete(journal)
    db.flush()
    logger.info("Journal deleted", extra={"ctx": {"journal_id": journal_id}})


# ---------- JOURNAL ENTRIES ----------
def _prepare_lines(db: Session, lines: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    prepared = []
    for raw in lines:
        debit = to_money(raw.get("debit"))
        credit = to_money(raw.get("credit"))
        if debit < 0 or credit < 0:
            raise ValidationError("Debit and credit must not be negative", account_id=raw.get("account_id"))

        account_id = raw.get("account_id")
        if account_id is None or db.get(Account, account_id) is None:
            logger.error("Account not found", extra={"ctx": {"account_id": account_id}})
            raise NotFoundError("account", account_id)

        prepared.append(
            {
                "account_id": account_id,
                "description": raw.get("description"),
                "debit": debit,
                "credit": credit,
            }
        )

    if not prepared:
        raise ValidationError("A journal entry needs at least one line")

    total_debit = sum((l["debit"] for l in prepared), ZERO)
    total_credit = sum((l["credit"] for l in prepared), ZERO)
    if total_debit != total_credit:
        logger.error(
            "Unbalanced journal entry rejected",
            extra={"ctx": {"debits": str(total_debit), "credits": str(total_credit)}},
        )
        raise UnbalancedEntryError(total_debit, total_credit)

    return prepared


def _next_reference(db: Session) -> str:
    count = db.execute(select(func.count(JournalEntry.id))).scalar_one()
    return f"JE-{int(time.time() * 1000)}-{count + 1}"


def _apply_to_accounts(db: Session, entry: JournalEntry) -> None:
    for line in entry.lines:
        account = get_for_update(db, Account, line.account_id)
        if account is None:
            raise NotFoundError("account", line.account_id)
        account.amount = to_money(account.amount) + line.debit - line.credit

    entry.posted_at = datetime.now(timezone.utc)
    db.flush()


def create_journal_entry(
    db: Session,
    journal_id: int,
    lines: Iterable[Mapping[str, Any]],
    *,
    status: EntryStatus = EntryStatus.draft,
    entry_date: date | None = None,
    reference: str | None = None,
    notes: str | None = None,
) -> JournalEntry:
    """
    Validate and persist a balanced entry.

    Journal and every account must exist and Σdebit must equal Σcredit; nothing
    is written otherwise. An entry created directly as ``posted`` has its
    balance effects applied in the same call.
    """
    status = EntryStatus(status)
    lines = list(lines)
    logger.info("Creating journal entry", extra={"ctx": {"journal_id": journal_id, "lines": len(lines)}})

    if status == EntryStatus.void:
        raise ValidationError("Journal entries are created as draft or posted")

    if db.get(Journal, journal_id) is None:
        logger.error("Journal not found", extra={"ctx": {"journal_id": journal_id}})
        raise NotFoundError("journal", journal_id)

    prepared = _prepare_lines(db, lines)

    entry = JournalEntry(
        journal_id=journal_id,
        entry_date=entry_date or date.today(),
        reference=reference or _next_reference(db),
        notes=notes,
        status=status,
    )
    for no, line in enumerate(prepared, start=1):
        entry.lines.append(JournalEntryLine(line_no=no, **line))

    db.add(entry)
    db.flush()

    if status == EntryStatus.posted:
        _apply_to_accounts(db, entry)

    logger.info(
        "Journal entry created successfully",
        extra={"ctx": {"entry_id": entry.id, "reference": entry.reference, "status": status.value}},
    )
    return entry


def get_journal_entry(db: Session, entry_id: int) -> JournalEntry:
    entry = db.get(JournalEntry, entry_id)
    if not entry:
        raise NotFoundError("journal entry", entry_id)
    return entry


def list_journal_entries(db: Session, *, status: EntryStatus | None = None) -> list[JournalEntry]:
    stmt = select(JournalEntry).order_by(JournalEntry.id.desc())
    if status is not None:
        stmt = stmt.where(JournalEntry.status == status)
    return list(db.execute(stmt).scalars().all())


def post_journal_entry(db: Session, entry_id: int) -> JournalEntry:
    """draft -> posted; applies the account effects exactly once."""
    entry = get_for_update(db, JournalEntry, entry_id)
    if entry is None:
        logger.error("Journal entry to post not found", extra={"ctx": {"entry_id": entry_id}})
        raise NotFoundError("journal entry", entry_id)

    if entry.status == EntryStatus.posted:
        logger.error("Journal entry already posted", extra={"ctx": {"entry_id": entry_id}})
        raise EntryAlreadyPostedError(entry_id)
    if entry.status != EntryStatus.draft:
        raise StateConflictError(f"Cannot post a {entry.status.value} journal entry", entry_id=entry_id)

    entry.status = EntryStatus.posted
    _apply_to_accounts(db, entry)

    logger.info("Journal entry posted", extra={"ctx": {"entry_id": entry_id, "lines": len(entry.lines)}})
    return entry


def _require_draft(entry: JournalEntry, action: str) -> None:
    if entry.status == EntryStatus.posted:
        logger.error(f"Cannot {action} posted journal entry", extra={"ctx": {"entry_id": entry.id}})
        raise StateConflictError(f"Cannot {action} posted journal entry", entry_id=entry.id)
    if entry.status != EntryStatus.draft:
        raise StateConflictError(f"Cannot {action} a {entry.status.value} journal entry", entry_id=entry.id)


def update_journal_entry(
    db: Session,
    entry_id: int,
    *,
    lines: Iterable[Mapping[str, Any]] | None = None,
    journal_id: int | None = None,
    entry_date: date | None = None,
    reference: str | None = None,
    notes: str | None = None,
) -> JournalEntry:
    entry = get_journal_entry(db, entry_id)
    _require_draft(entry, "update")

    if journal_id is not None:
        get_journal(db, journal_id)
        entry.journal_id = journal_id
    if entry_date is not None:
        entry.entry_date = entry_date
    if reference is not None:
        entry.reference = reference
    if notes is not None:
        entry.notes = notes

    if lines is not None:
        prepared = _prepare_lines(db, list(lines))
        entry.lines.clear()
        db.flush()
        for no, line in enumerate(prepared, start=1):
            entry.lines.append(JournalEntryLine(line_no=no, **line))

    db.flush()
    logger.info("Journal entry updated", extra={"ctx": {"entry_id": entry_id}})
    return entry


def void_journal_entry(db: Session, entry_id: int) -> JournalEntry:
    entry = get_journal_entry(db, entry_id)
    _require_draft(entry, "void")
    entry.status = EntryStatus.void
    db.flush()
    logger.info("Journal entry voided", extra={"ctx": {"entry_id": entry_id}})
    return entry


def delete_journal_entry(db: Session, entry_id: int) -> None:
    entry = get_journal_entry(db, entry_id)
    if entry.status == EntryStatus.posted:
        logger.error("Cannot delete posted journal entry", extra={"ctx": {"entry_id": entry_id}})
        raise StateConflictError("Cannot delete posted journal entry", entry_id=entry_id)

    db.delete(entry)
    db.flush()
    logger.info("Journal entry deleted", extra={"ctx": {"entry_id": entry_id}})
