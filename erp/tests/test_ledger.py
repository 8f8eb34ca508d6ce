from decimal import Decimal

import pytest
from sqlalchemy import select

from erp.app.db.models.core_types import AccountType, EntryStatus
from erp.app.db.models.models_v1 import Account, JournalEntry, JournalEntryLine
from erp.services import ledger, posting
from erp.errors import (
    EntryAlreadyPostedError,
    NotFoundError,
    ReferencedError,
    StateConflictError,
    UnbalancedEntryError,
    ValidationError,
)


@pytest.fixture
def books(db_session):
    cash = ledger.create_account(db_session, code="1000", name="Cash", type=AccountType.asset)
    sales = ledger.create_account(db_session, code="4000", name="Sales", type=AccountType.revenue)
    journal = ledger.create_journal(db_session, name="General", code="GEN", journal_type="general")
    return cash, sales, journal


def _lines(debit_account, credit_account, amount):
    return [
        {"account_id": debit_account.id, "debit": amount, "credit": 0},
        {"account_id": credit_account.id, "debit": 0, "credit": amount},
    ]


def test_posted_entry_moves_balances_and_is_then_frozen(db_session, books):
    """
    GIVEN
    - two accounts at 0
    - an entry debit A 100 / credit B 100 created as posted

    THEN
    - A.amount == 100, B.amount == -100
    - updating the entry afterwards is a state conflict
    """
    cash, sales, journal = books

    # ---------- ACT ----------
    entry = ledger.create_journal_entry(db_session, journal.id, _lines(cash, sales, 100), status=EntryStatus.posted)

    # ---------- ASSERT ----------
    db_session.refresh(cash)
    db_session.refresh(sales)
    assert cash.amount == Decimal("100.00")
    assert sales.amount == Decimal("-100.00")
    assert entry.posted_at is not None

    with pytest.raises(StateConflictError):
        ledger.update_journal_entry(db_session, entry.id, notes="too late")


def test_unbalanced_entry_is_rejected_without_writes(db_session, books):
    cash, sales, journal = books

    with pytest.raises(UnbalancedEntryError) as exc:
        ledger.create_journal_entry(
            db_session,
            journal.id,
            [
                {"account_id": cash.id, "debit": 100, "credit": 0},
                {"account_id": sales.id, "debit": 0, "credit": 90},
            ],
            status=EntryStatus.posted,
        )

    assert exc.value.data["debits"] == "100.00"
    assert exc.value.data["credits"] == "90.00"
    assert db_session.execute(select(JournalEntry)).scalars().all() == []
    db_session.refresh(cash)
    assert cash.amount == Decimal("0.00")


def test_flush_refuses_unbalanced_entry_built_by_hand(db_session, books):
    cash, sales, journal = books
    entry = JournalEntry(journal_id=journal.id, reference="MANUAL-1")
    entry.lines.append(JournalEntryLine(line_no=1, account_id=cash.id, debit=Decimal("10"), credit=Decimal("0")))
    db_session.add(entry)

    with pytest.raises(UnbalancedEntryError):
        db_session.flush()


def test_entry_rejects_unknown_account_and_journal(db_session, books):
    cash, sales, journal = books

    with pytest.raises(NotFoundError):
        ledger.create_journal_entry(
            db_session,
            journal.id,
            [{"account_id": cash.id, "debit": 5}, {"account_id": 999_999, "credit": 5}],
        )
    with pytest.raises(NotFoundError):
        ledger.create_journal_entry(db_session, 999_999, _lines(cash, sales, 5))


def test_negative_amount_and_empty_lines_are_invalid(db_session, books):
    cash, sales, journal = books

    with pytest.raises(ValidationError):
        ledger.create_journal_entry(
            db_session,
            journal.id,
            [{"account_id": cash.id, "debit": -5}, {"account_id": sales.id, "debit": -5}],
        )
    with pytest.raises(ValidationError):
        ledger.create_journal_entry(db_session, journal.id, [])


def test_draft_entry_applies_effects_only_when_posted_once(db_session, books):
    """
    GIVEN
    - a draft entry of 40

    THEN
    - balances untouched while draft
    - posting applies them once; posting again -> EntryAlreadyPostedError, no double effect
    """
    cash, sales, journal = books
    entry = ledger.create_journal_entry(db_session, journal.id, _lines(cash, sales, 40))
    assert entry.status == EntryStatus.draft
    assert entry.reference.startswith("JE-")

    db_session.refresh(cash)
    assert cash.amount == Decimal("0.00")

    ledger.post_journal_entry(db_session, entry.id)
    with pytest.raises(EntryAlreadyPostedError):
        ledger.post_journal_entry(db_session, entry.id)

    db_session.refresh(cash)
    db_session.refresh(sales)
    assert cash.amount == Decimal("40.00")
    assert sales.amount == Decimal("-40.00")


def test_void_entry_cannot_be_posted(db_session, books):
    cash, sales, journal = books
    entry = ledger.create_journal_entry(db_session, journal.id, _lines(cash, sales, 10))

    ledger.void_journal_entry(db_session, entry.id)

    with pytest.raises(StateConflictError):
        ledger.post_journal_entry(db_session, entry.id)


def test_update_draft_entry_replaces_lines(db_session, books):
    cash, sales, journal = books
    entry = ledger.create_journal_entry(db_session, journal.id, _lines(cash, sales, 10))

    ledger.update_journal_entry(db_session, entry.id, lines=_lines(sales, cash, 25), notes="corrected")

    db_session.refresh(entry)
    assert [(l.account_id, l.debit, l.credit) for l in entry.lines] == [
        (sales.id, Decimal("25.00"), Decimal("0.00")),
        (cash.id, Decimal("0.00"), Decimal("25.00")),
    ]
    assert entry.notes == "corrected"


def test_delete_guards(db_session, books):
    cash, sales, journal = books
    posted = ledger.create_journal_entry(db_session, journal.id, _lines(cash, sales, 10), status=EntryStatus.posted)

    with pytest.raises(StateConflictError):
        ledger.delete_journal_entry(db_session, posted.id)
    with pytest.raises(ReferencedError):
        ledger.delete_account(db_session, cash.id)
    with pytest.raises(ReferencedError):
        ledger.delete_journal(db_session, journal.id)

    draft = ledger.create_journal_entry(db_session, journal.id, _lines(cash, sales, 3))
    ledger.delete_journal_entry(db_session, draft.id)
    assert db_session.get(JournalEntry, draft.id) is None

    unused = ledger.create_account(db_session, code="9999", name="Unused", type=AccountType.equity)
    ledger.delete_account(db_session, unused.id)
    assert db_session.get(Account, unused.id) is None


def test_account_code_is_uppercased_and_unique(db_session):
    account = ledger.create_account(db_session, code=" ar-01 ", name="Receivables", type=AccountType.asset)
    assert account.code == "AR-01"

    with pytest.raises(ValidationError):
        ledger.create_account(db_session, code="AR-01", name="Again", type=AccountType.asset)


def test_account_ledger_totals(db_session, books):
    cash, sales, journal = books
    ledger.create_journal_entry(db_session, journal.id, _lines(cash, sales, 100), status=EntryStatus.posted)
    ledger.create_journal_entry(db_session, journal.id, _lines(sales, cash, 30))

    view = ledger.account_ledger(db_session, cash.id)

    assert len(view["entries"]) == 2
    assert view["total_debit"] == Decimal("100.00")
    assert view["total_credit"] == Decimal("30.00")
    assert view["balance"] == Decimal("70.00")
    assert {e["journal_name"] for e in view["entries"]} == {"General"}


# ---------- best-effort posting ----------
def test_post_best_effort_books_entry_with_complete_mapping(db_session, registry):
    outcome = posting.post_best_effort(
        db_session,
        registry,
        journal_role=posting.SALES_JOURNAL,
        debit_role=posting.CASH,
        credit_role=posting.SALES_REVENUE,
        amount=Decimal("55"),
        debit_description="Sale",
        credit_description="Revenue",
        reference="INV-1",
    )

    assert outcome.posted is True
    entry = db_session.get(JournalEntry, outcome.entry_id)
    assert entry.status == EntryStatus.draft
    assert entry.reference == "INV-1"
    assert entry.is_balanced()


def test_post_best_effort_skips_on_missing_mapping(db_session):
    outcome = posting.post_best_effort(
        db_session,
        posting.PostingRegistry(),
        journal_role=posting.SALES_JOURNAL,
        debit_role=posting.CASH,
        credit_role=posting.SALES_REVENUE,
        amount=Decimal("10"),
        debit_description="Sale",
        credit_description="Revenue",
    )

    assert outcome.posted is False
    assert posting.SALES_JOURNAL in outcome.reason
    assert db_session.execute(select(JournalEntry)).scalars().all() == []


def test_post_best_effort_skips_without_registry_or_amount(db_session, registry):
    kwargs = dict(
        journal_role=posting.SALES_JOURNAL,
        debit_role=posting.CASH,
        credit_role=posting.SALES_REVENUE,
        debit_description="Sale",
        credit_description="Revenue",
    )

    assert posting.post_best_effort(db_session, None, amount=Decimal("10"), **kwargs).posted is False
    assert posting.post_best_effort(db_session, registry, amount=Decimal("0"), **kwargs).posted is False


def test_set_mapping_rejects_unknown_role(db_session, books):
    cash, _, _ = books
    with pytest.raises(ValidationError):
        posting.set_mapping(db_session, "petty-cash", account_id=cash.id)
