"""
Periodic loan jobs, meant to be triggered by an external scheduler (cron).

The public entry points take no arguments, open their own session, commit,
and never raise: any failure is rolled back and logged. The ``*_in`` variants
hold the logic and work inside a caller supplied session.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from erp.app.config import settings
from erp.app.db.models.core_types import BorrowerType, InstallmentStatus, LoanStatus
from erp.app.db.models.models_v1 import Loan, LoanInstallment, Organization, User
from erp.app.db.session import SessionLocal
from erp.services.email import EmailService
from erp.services.loans import borrower_name

logger = logging.getLogger(__name__)


class ReminderMailer(Protocol):
    def send_payment_reminder(self, recipient_email: Optional[str], installment: LoanInstallment, borrower_name: str) -> bool:
        ...


def mark_overdue_installments_in(db: Session, today: date) -> int:
    result = db.execute(
        update(LoanInstallment)
        .where(LoanInstallment.status == InstallmentStatus.pending)
        .where(LoanInstallment.due_date < today)
        .values(status=InstallmentStatus.overdue, updated_at=datetime.now(timezone.utc))
    )
    count = result.rowcount or 0
    if count:
        logger.info("Marked overdue installments", extra={"ctx": {"count": count, "date": today.isoformat()}})
    return count


def check_defaulted_loans_in(db: Session, today: date, after_days: int | None = None) -> int:
    """Active loans with an installment overdue for more than ``after_days`` become defaulted."""
    after_days = settings.default_after_days if after_days is None else after_days
    cutoff = today - timedelta(days=after_days)

    late_loans = (
        select(LoanInstallment.loan_id)
        .where(LoanInstallment.status == InstallmentStatus.overdue)
        .where(LoanInstallment.due_date < cutoff)
        .distinct()
    )
    loan_ids = list(db.execute(late_loans).scalars().all())
    if not loan_ids:
        return 0

    result = db.execute(
        update(Loan)
        .where(Loan.id.in_(loan_ids))
        .where(Loan.status == LoanStatus.active)
        .values(status=LoanStatus.defaulted, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session="fetch")
    )
    count = result.rowcount or 0
    if count:
        logger.info("Marked loans as defaulted", extra={"ctx": {"count": count, "loan_ids": loan_ids[:5]}})
    return count


def _borrower_email(db: Session, loan: Loan) -> Optional[str]:
    model = Organization if loan.borrower_type == BorrowerType.organization else User
    borrower = db.get(model, loan.borrower_id)
    return borrower.email if borrower else None


def send_payment_reminders_in(
    db: Session,
    today: date,
    mailer: ReminderMailer,
    days_ahead: int | None = None,
) -> int:
    """Hand every pending installment due in ``[today, today + days_ahead]`` to ``mailer``."""
    days_ahead = settings.reminder_days_ahead if days_ahead is None else days_ahead

    upcoming = db.execute(
        select(LoanInstallment, Loan)
        .join(Loan, Loan.id == LoanInstallment.loan_id)
        .where(LoanInstallment.status == InstallmentStatus.pending)
        .where(LoanInstallment.due_date >= today)
        .where(LoanInstallment.due_date <= today + timedelta(days=days_ahead))
        .order_by(LoanInstallment.due_date)
    ).all()

    sent = 0
    for installment, loan in upcoming:
        name = borrower_name(db, loan)
        ctx = {"installment_id": installment.id, "due_date": installment.due_date, "borrower": name}
        try:
            if mailer.send_payment_reminder(_borrower_email(db, loan), installment, name):
                sent += 1
        except Exception:
            logger.error("Payment reminder failed", exc_info=True, extra={"ctx": ctx})
            continue
        logger.info("Payment reminder processed", extra={"ctx": {**ctx, "amount": str(installment.amount)}})

    if upcoming:
        logger.info("Payment reminders processed", extra={"ctx": {"due": len(upcoming), "sent": sent}})
    return sent


@contextmanager
def _job(name: str) -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"Error in {name}", exc_info=True)
    finally:
        db.close()


def mark_overdue_installments() -> None:
    with _job("mark_overdue_installments") as db:
        mark_overdue_installments_in(db, date.today())


def check_defaulted_loans() -> None:
    with _job("check_defaulted_loans") as db:
        check_defaulted_loans_in(db, date.today())


def send_payment_reminders(mailer: Optional[ReminderMailer] = None) -> None:
    if mailer is None:
        mailer = EmailService()
    with _job("send_payment_reminders") as db:
        send_payment_reminders_in(db, date.today(), mailer)
