from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp.app.config import settings
from erp.app.db.models.core_types import AccountType, Role
from erp.app.db.models.models_v1 import Account, Journal, Organization, User
from erp.app.db.session import SessionLocal
from erp.app.logging_config import configure_logging
from erp.services import posting

logger = logging.getLogger(__name__)

# code, name, type, posting role
CHART_OF_ACCOUNTS = [
    ("1000", "cash/bank", AccountType.asset, posting.CASH),
    ("2000", "supplier", AccountType.liability, posting.ACCOUNTS_PAYABLE),
    ("2100", "Loan Payable", AccountType.liability, posting.LOAN_PAYABLE),
    ("4000", "sales", AccountType.revenue, posting.SALES_REVENUE),
    ("5000", "purchases", AccountType.expense, posting.PURCHASES_EXPENSE),
    ("5100", "shipping", AccountType.expense, posting.SHIPPING_EXPENSE),
]

# code, name, journal_type, posting role
JOURNALS = [
    ("SAL", "Sales", "sales", posting.SALES_JOURNAL),
    ("PUR", "Purchases", "purchases", posting.PURCHASES_JOURNAL),
    ("EXP", "Expenses", "expenses", posting.EXPENSES_JOURNAL),
    ("LOAN", "Loans", "loan", posting.LOAN_JOURNAL),
    ("LPAY", "Loan payments", "loan/payment", posting.LOAN_PAYMENT_JOURNAL),
]


def seed_ledger(db: Session) -> None:
    """Default chart of accounts and journals, each wired to its posting role. Idempotent."""
    for code, name, account_type, role in CHART_OF_ACCOUNTS:
        account = db.scalar(select(Account).where(Account.code == code))
        if not account:
            account = Account(code=code, name=name, type=account_type)
            db.add(account)
            db.flush()
        posting.set_mapping(db, role, account_id=account.id)

    for code, name, journal_type, role in JOURNALS:
        journal = db.scalar(select(Journal).where(Journal.code == code))
        if not journal:
            journal = Journal(code=code, name=name, journal_type=journal_type)
            db.add(journal)
            db.flush()
        posting.set_mapping(db, role, journal_id=journal.id)


def run_seed():
    configure_logging(settings.log_level)
    db = SessionLocal()
    try:
        org = db.scalar(select(Organization).where(Organization.trade_name == "Main"))
        if not org:
            org = Organization(trade_name="Main")
            db.add(org)
            db.flush()

        user = db.scalar(select(User).where(User.name == "ADMIN"))
        if not user:
            db.add(User(organization_id=org.id, name="ADMIN", role=Role.admin, active=True))

        seed_ledger(db)
        db.commit()

        logger.info("Seed OK", extra={"ctx": {"accounts": len(CHART_OF_ACCOUNTS), "journals": len(JOURNALS)}})
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
