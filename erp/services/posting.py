"""
Automatic journal entries raised by business operations.

Well-known accounts and journals are resolved through ``account_mappings``
rows, keyed by role, instead of matching account names. Posting is best-effort:
when the mapping is incomplete or the entry fails, the business operation still
succeeds and the caller gets a ``PostingOutcome`` saying why nothing was booked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp.app.db.models.core_types import EntryStatus
from erp.app.db.models.models_v1 import Account, AccountMapping, Journal
from erp.services import ledger
from erp.errors import ValidationError

logger = logging.getLogger(__name__)

# account roles
CASH = "cash-account"
SALES_REVENUE = "sales-revenue-account"
PURCHASES_EXPENSE = "purchases-expense-account"
ACCOUNTS_PAYABLE = "accounts-payable-account"
SHIPPING_EXPENSE = "shipping-expense-account"
LOAN_PAYABLE = "loan-payable-account"

# journal roles
SALES_JOURNAL = "sales-journal"
PURCHASES_JOURNAL = "purchases-journal"
EXPENSES_JOURNAL = "expenses-journal"
LOAN_JOURNAL = "loan-journal"
LOAN_PAYMENT_JOURNAL = "loan-payment-journal"

ACCOUNT_ROLES = (CASH, SALES_REVENUE, PURCHASES_EXPENSE, ACCOUNTS_PAYABLE, SHIPPING_EXPENSE, LOAN_PAYABLE)
JOURNAL_ROLES = (SALES_JOURNAL, PURCHASES_JOURNAL, EXPENSES_JOURNAL, LOAN_JOURNAL, LOAN_PAYMENT_JOURNAL)


@dataclass(frozen=True)
class PostingOutcome:
    posted: bool
    entry_id: int | None = None
    reason: str | None = None

    @classmethod
    def skipped(cls, reason: str) -> "PostingOutcome":
        return cls(posted=False, reason=reason)

    def as_dict(self) -> dict:
        return {"posted": self.posted, "entry_id": self.entry_id, "reason": self.reason}


class PostingRegistry:
    """Role -> account id / journal id lookup, loaded once per unit of work."""

    def __init__(
        self,
        accounts: Mapping[str, int] | None = None,
        journals: Mapping[str, int] | None = None,
    ):
        self.accounts = dict(accounts or {})
        self.journals = dict(journals or {})

    @classmethod
    def load(cls, db: Session) -> "PostingRegistry":
        accounts: dict[str, int] = {}
        journals: dict[str, int] = {}
        rows = db.execute(select(AccountMapping).where(AccountMapping.is_active.is_(True))).scalars()
        for row in rows:
            if row.account_id is not None:
                accounts[row.role] = row.account_id
            if row.journal_id is not None:
                journals[row.role] = row.journal_id
        return cls(accounts, journals)

    def account_id(self, role: str) -> int | None:
        return self.accounts.get(role)

    def journal_id(self, role: str) -> int | None:
        return self.journals.get(role)


def set_mapping(db: Session, role: str, *, account_id: int | None = None, journal_id: int | None = None) -> AccountMapping:
    """Create or repoint the mapping row for ``role``."""
    if role not in ACCOUNT_ROLES + JOURNAL_ROLES:
        raise ValidationError(f"Unknown posting role: {role}", role=role)

    mapping = db.execute(
        select(AccountMapping).where(AccountMapping.role == role).with_for_update()
    ).scalar_one_or_none()
    if mapping is None:
        mapping = AccountMapping(role=role)
        db.add(mapping)

    mapping.account_id = account_id
    mapping.journal_id = journal_id
    mapping.is_active = True
    db.flush()
    return mapping


def post_best_effort(
    db: Session,
    registry: PostingRegistry | None,
    *,
    journal_role: str,
    debit_role: str,
    credit_role: str,
    amount: Decimal,
    debit_description: str,
    credit_description: str,
    reference: str | None = None,
    notes: str | None = None,
    status: EntryStatus = EntryStatus.draft,
) -> PostingOutcome:
    """
    Book a two-line entry (debit ``debit_role``, credit ``credit_role``) if the
    ledger is set up for it.

    The entry is written inside a SAVEPOINT so a failure here rolls back only
    the accounting side, never the caller's business change.
    """
    ctx = {"journal_role": journal_role, "reference": reference, "amount": str(amount)}

    if registry is None:
        return PostingOutcome.skipped("no posting registry")

    amount = ledger.to_money(amount)
    if amount <= 0:
        return PostingOutcome.skipped("nothing to post")

    journal_id = registry.journal_id(journal_role)
    debit_id = registry.account_id(debit_role)
    credit_id = registry.account_id(credit_role)

    missing = [
        role
        for role, value in ((journal_role, journal_id), (debit_role, debit_id), (credit_role, credit_id))
        if value is None
    ]
    if missing:
        logger.warning(
            "Accounting setup incomplete, journal entry skipped",
            extra={"ctx": {**ctx, "missing_roles": missing}},
        )
        return PostingOutcome.skipped(f"missing mapping for: {', '.join(missing)}")

    if (
        db.get(Journal, journal_id) is None
        or db.get(Account, debit_id) is None
        or db.get(Account, credit_id) is None
    ):
        logger.warning("Mapped ledger row no longer exists, journal entry skipped", extra={"ctx": ctx})
        return PostingOutcome.skipped("mapped account or journal not found")

    try:
        with db.begin_nested():
            entry = ledger.create_journal_entry(
                db,
                journal_id,
                [
                    {"account_id": debit_id, "description": debit_description, "debit": amount, "credit": 0},
                    {"account_id": credit_id, "description": credit_description, "debit": 0, "credit": amount},
                ],
                status=status,
                reference=reference,
                notes=notes,
            )
    except Exception as exc:
        logger.error("Error creating journal entry", exc_info=True, extra={"ctx": ctx})
        return PostingOutcome.skipped(f"journal entry failed: {exc}")

    logger.info(
        "Journal entry created",
        extra={"ctx": {**ctx, "entry_id": entry.id, "status": EntryStatus(status).value}},
    )
    return PostingOutcome(posted=True, entry_id=entry.id)
