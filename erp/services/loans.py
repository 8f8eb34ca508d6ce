"""
Loans and their monthly installments.

    pending --approve--> active --balance 0--> completed
    pending --reject--> rejected
    active --overdue > 30 days--> defaulted   (see loan_scheduler)
    defaulted --balance 0--> completed

The borrower is a tagged reference ``(borrower_type, borrower_id)`` resolved
explicitly against ``organizations`` or ``users``.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from erp.app.db.models.core_types import (
    BorrowerType,
    EntryStatus,
    InstallmentStatus,
    LoanStatus,
    PaymentMethod,
)
from erp.app.db.models.models_v1 import Loan, LoanInstallment, Organization, User
from erp.services import posting
from erp.services._db import get_for_update
from erp.errors import NotFoundError, ReferencedError, StateConflictError, ValidationError
from erp.services.ledger import CENT, ZERO, to_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

LOAN_TERM_FIELDS = {"loan_amount", "interest_rate", "installment_number"}
LOAN_UPDATABLE = LOAN_TERM_FIELDS | {"start_date", "description", "borrower_type", "borrower_id"}

# a payment is accepted on these loans; only an active one moves to completed
PAYABLE_LOAN_STATUSES = {LoanStatus.active, LoanStatus.defaulted}


def compute_loan_terms(loan_amount: Decimal, interest_rate: Decimal, installment_number: int) -> dict[str, Decimal]:
    """
    Flat interest terms::

        total_payable      = amount + amount * rate / 100
        installment_amount = total_payable / n            (rounded to cents)
        last_installment   = total_payable - installment_amount * (n - 1)
    """
    amount = to_money(loan_amount)
    rate = Decimal(str(interest_rate))
    if amount < 0:
        raise ValidationError("Loan amount must not be negative")
    if rate < 0:
        raise ValidationError("Interest rate must not be negative")
    if installment_number < 1:
        raise ValidationError("Installment number must be at least 1")

    total = (amount + amount * rate / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    installment = (total / installment_number).quantize(CENT, rounding=ROUND_HALF_UP)
    last = total - installment * (installment_number - 1)
    return {"total_payable": total, "installment_amount": installment, "last_installment_amount": last}


def installment_schedule(start_date: date, installment_number: int) -> list[date]:
    """Installment ``i`` (0-based) falls due ``i`` months after ``start_date``."""
    return [start_date + relativedelta(months=i) for i in range(installment_number)]


def resolve_borrower(db: Session, loan: Loan) -> Organization | User:
    model = Organization if loan.borrower_type == BorrowerType.organization else User
    borrower = db.get(model, loan.borrower_id)
    if borrower is None:
        raise NotFoundError(loan.borrower_type.value.lower(), loan.borrower_id)
    return borrower


def borrower_name(db: Session, loan: Loan) -> str:
    model = Organization if loan.borrower_type == BorrowerType.organization else User
    borrower = db.get(model, loan.borrower_id)
    if borrower is None:
        return f"{loan.borrower_type.value} {loan.borrower_id}"
    return borrower.trade_name if isinstance(borrower, Organization) else borrower.name


def _check_borrower(db: Session, borrower_type: BorrowerType, borrower_id: int) -> None:
    model = Organization if BorrowerType(borrower_type) == BorrowerType.organization else User
    if db.get(model, borrower_id) is None:
        raise NotFoundError(BorrowerType(borrower_type).value.lower(), borrower_id)


def _apply_terms(loan: Loan) -> None:
    terms = compute_loan_terms(loan.loan_amount, loan.interest_rate, loan.installment_number)
    loan.total_payable = terms["total_payable"]
    loan.installment_amount = terms["installment_amount"]
    loan.remaining_balance = terms["total_payable"]


def _lock_loan(db: Session, loan_id: int) -> Loan:
    loan = get_for_update(db, Loan, loan_id)
    if loan is None:
        logger.error("Loan not found", extra={"ctx": {"loan_id": loan_id}})
        raise NotFoundError("loan", loan_id)
    return loan


# ---------- LOANS ----------
def create_loan(
    db: Session,
    *,
    borrower_type: BorrowerType,
    borrower_id: int,
    loan_amount: Decimal,
    interest_rate: Decimal,
    installment_number: int,
    start_date: date,
    description: str | None = None,
    created_by: int | None = None,
) -> Loan:
    logger.info(
        "Creating new loan",
        extra={"ctx": {"borrower_type": str(borrower_type), "borrower_id": borrower_id, "amount": str(loan_amount)}},
    )
    _check_borrower(db, borrower_type, borrower_id)

    loan = Loan(
        borrower_type=BorrowerType(borrower_type),
        borrower_id=borrower_id,
        loan_amount=to_money(loan_amount),
        interest_rate=Decimal(str(interest_rate)),
        installment_number=installment_number,
        start_date=start_date,
        description=description,
        created_by=created_by,
        status=LoanStatus.pending,
    )
    _apply_terms(loan)
    db.add(loan)
    db.flush()

    logger.info(
        "Loan created successfully",
        extra={"ctx": {"loan_id": loan.id, "total_payable": str(loan.total_payable), "installments": installment_number}},
    )
    return loan


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = db.get(Loan, loan_id)
    if not loan:
        raise NotFoundError("loan", loan_id)
    return loan


def list_loans(
    db: Session,
    *,
    status: LoanStatus | None = None,
    borrower_type: BorrowerType | None = None,
    borrower_id: int | None = None,
) -> list[Loan]:
    stmt = select(Loan).order_by(Loan.id.desc())
    if status is not None:
        stmt = stmt.where(Loan.status == status)
    if borrower_type is not None:
        stmt = stmt.where(Loan.borrower_type == borrower_type)
    if borrower_id is not None:
        stmt = stmt.where(Loan.borrower_id == borrower_id)
    return list(db.execute(stmt).scalars().all())


def update_loan(db: Session, loan_id: int, **fields: Any) -> Loan:
    loan = _lock_loan(db, loan_id)
    if loan.status != LoanStatus.pending:
        logger.error("Cannot update non-pending loan", extra={"ctx": {"loan_id": loan_id, "status": loan.status.value}})
        raise StateConflictError("Can only update pending loans", loan_id=loan_id)

    unknown = set(fields) - LOAN_UPDATABLE
    if unknown:
        raise ValidationError(f"Loan fields cannot be updated: {', '.join(sorted(unknown))}")

    if "borrower_type" in fields or "borrower_id" in fields:
        _check_borrower(
            db,
            fields.get("borrower_type", loan.borrower_type),
            fields.get("borrower_id", loan.borrower_id),
        )

    for key, value in fields.items():
        setattr(loan, key, value)
    if LOAN_TERM_FIELDS & set(fields):
        _apply_terms(loan)
    db.flush()

    logger.info("Loan updated", extra={"ctx": {"loan_id": loan_id, "fields": sorted(fields)}})
    return loan


def delete_loan(db: Session, loan_id: int) -> None:
    loan = get_loan(db, loan_id)

    count = db.execute(
        select(func.count(LoanInstallment.id)).where(LoanInstallment.loan_id == loan_id)
    ).scalar_one()
    if count:
        logger.error("Cannot delete loan with installments", extra={"ctx": {"loan_id": loan_id, "installments": count}})
        raise ReferencedError("Cannot delete loan with existing installments", loan_id=loan_id)

    db.delete(loan)
    db.flush()
    logger.info("Loan deleted", extra={"ctx": {"loan_id": loan_id}})


def approve_loan(
    db: Session,
    loan_id: int,
    *,
    actor_id: int | None = None,
    registry: posting.PostingRegistry | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """
    pending -> active. Generates the installment schedule and books the loan
    (debit loan payable, credit cash) as a posted entry when the ledger is set up.
    """
    today = today or date.today()
    logger.info("Approving loan", extra={"ctx": {"loan_id": loan_id}})

    loan = _lock_loan(db, loan_id)
    if not loan.can_approve():
        logger.error("Loan cannot be approved", extra={"ctx": {"loan_id": loan_id, "status": loan.status.value}})
        raise StateConflictError("Only pending loans can be approved", loan_id=loan_id)

    terms = compute_loan_terms(loan.loan_amount, loan.interest_rate, loan.installment_number)
    due_dates = installment_schedule(loan.start_date, loan.installment_number)

    installments = []
    for i, due in enumerate(due_dates):
        last = i == len(due_dates) - 1
        installments.append(
            LoanInstallment(
                loan_id=loan.id,
                amount=terms["last_installment_amount"] if last else terms["installment_amount"],
                due_date=due,
                status=InstallmentStatus.overdue if due < today else InstallmentStatus.pending,
                created_by=actor_id,
            )
        )
    db.add_all(installments)

    loan.status = LoanStatus.active
    loan.approved_by = actor_id
    db.flush()

    name = borrower_name(db, loan)
    outcome = posting.post_best_effort(
        db,
        registry,
        journal_role=posting.LOAN_JOURNAL,
        debit_role=posting.LOAN_PAYABLE,
        credit_role=posting.CASH,
        amount=loan.total_payable,
        debit_description=f"Loan payable - {name}",
        credit_description="Cash received from bank for loan",
        reference=f"LOAN-{loan.id}",
        notes=f"Loan approval for {name}",
        status=EntryStatus.posted,
    )

    logger.info(
        "Loan approved successfully",
        extra={
            "ctx": {
                "loan_id": loan.id,
                "approved_by": actor_id,
                "installments": len(installments),
                "total_payable": str(loan.total_payable),
                "journal_entry": outcome.posted,
            }
        },
    )
    return {"loan": loan, "installments": installments, "posting": outcome}


def reject_loan(db: Session, loan_id: int, *, actor_id: int | None = None) -> Loan:
    loan = _lock_loan(db, loan_id)
    if loan.status != LoanStatus.pending:
        raise StateConflictError("Only pending loans can be rejected", loan_id=loan_id)

    loan.status = LoanStatus.rejected
    loan.approved_by = actor_id
    db.flush()
    logger.info("Loan rejected", extra={"ctx": {"loan_id": loan_id, "rejected_by": actor_id}})
    return loan


def loan_summary(db: Session, loan_id: int) -> dict[str, Any]:
    loan = get_loan(db, loan_id)
    installments = list(
        db.execute(select(LoanInstallment).where(LoanInstallment.loan_id == loan_id)).scalars().all()
    )

    def _with(*statuses):
        return [i for i in installments if i.status in statuses]

    pending = sorted(_with(InstallmentStatus.pending), key=lambda i: i.due_date)
    summary = {
        "total_installments": len(installments),
        "paid_installments": len(_with(InstallmentStatus.paid)),
        "pending_installments": len(pending),
        "overdue_installments": len(_with(InstallmentStatus.overdue)),
        "total_paid": sum((i.amount for i in _with(InstallmentStatus.paid)), ZERO),
        "total_pending": sum((i.amount for i in _with(InstallmentStatus.pending, InstallmentStatus.overdue)), ZERO),
        "next_due_date": pending[0].due_date if pending else None,
    }
    return {"loan": loan, "summary": summary}


# ---------- INSTALLMENTS ----------
def get_installment(db: Session, installment_id: int) -> LoanInstallment:
    installment = db.get(LoanInstallment, installment_id)
    if not installment:
        raise NotFoundError("installment", installment_id)
    return installment


def list_installments(
    db: Session,
    *,
    loan_id: int | None = None,
    status: InstallmentStatus | None = None,
    due_from: date | None = None,
    due_to: date | None = None,
) -> list[LoanInstallment]:
    stmt = select(LoanInstallment).order_by(LoanInstallment.due_date, LoanInstallment.id)
    if loan_id is not None:
        stmt = stmt.where(LoanInstallment.loan_id == loan_id)
    if status is not None:
        stmt = stmt.where(LoanInstallment.status == status)
    if due_from is not None:
        stmt = stmt.where(LoanInstallment.due_date >= due_from)
    if due_to is not None:
        stmt = stmt.where(LoanInstallment.due_date <= due_to)
    return list(db.execute(stmt).scalars().all())


def list_overdue_installments(db: Session, *, today: date | None = None) -> list[LoanInstallment]:
    """Unpaid installments whose due date has passed, oldest first."""
    today = today or date.today()
    return list(
        db.execute(
            select(LoanInstallment)
            .where(LoanInstallment.status.in_([InstallmentStatus.pending, InstallmentStatus.overdue]))
            .where(LoanInstallment.due_date < today)
            .order_by(LoanInstallment.due_date)
        )
        .scalars()
        .all()
    )


def delete_installment(db: Session, installment_id: int) -> None:
    installment = get_installment(db, installment_id)
    if installment.status == InstallmentStatus.paid:
        logger.error("Cannot delete paid installment", extra={"ctx": {"installment_id": installment_id}})
        raise StateConflictError("Cannot delete paid installment", installment_id=installment_id)

    db.delete(installment)
    db.flush()
    logger.info("Installment deleted", extra={"ctx": {"installment_id": installment_id}})


def pay_installment(
    db: Session,
    installment_id: int,
    payment: Mapping[str, Any] | None = None,
    *,
    actor_id: int | None = None,
    registry: posting.PostingRegistry | None = None,
) -> dict[str, Any]:
    """
    Mark one installment paid and reduce the loan balance (floored at 0).

    ``payment`` may carry ``payment_date``, ``payment_method`` and ``notes``.
    """
    payment = dict(payment or {})
    logger.info("Paying installment", extra={"ctx": {"installment_id": installment_id}})

    installment = get_for_update(db, LoanInstallment, installment_id)
    if installment is None:
        logger.error("Installment not found", extra={"ctx": {"installment_id": installment_id}})
        raise NotFoundError("installment", installment_id)

    if installment.status == InstallmentStatus.paid:
        logger.error("Installment already paid", extra={"ctx": {"installment_id": installment_id}})
        raise StateConflictError("Installment has already been paid", installment_id=installment_id)
    if installment.status == InstallmentStatus.cancelled:
        raise StateConflictError("Installment has been cancelled", installment_id=installment_id)

    loan = _lock_loan(db, installment.loan_id)
    if loan.status not in PAYABLE_LOAN_STATUSES:
        raise StateConflictError(
            f"Cannot pay an installment of a {loan.status.value} loan",
            loan_id=loan.id,
            installment_id=installment_id,
        )

    method = payment.get("payment_method")
    try:
        method = PaymentMethod(method) if method else None
    except ValueError:
        raise ValidationError(f"Unknown payment method: {method}", installment_id=installment_id)

    installment.status = InstallmentStatus.paid
    installment.payment_date = payment.get("payment_date") or date.today()
    installment.payment_method = method
    installment.notes = payment.get("notes") or installment.notes

    loan.remaining_balance = max(ZERO, to_money(loan.remaining_balance) - to_money(installment.amount))
    if loan.remaining_balance == ZERO and loan.status in PAYABLE_LOAN_STATUSES:
        loan.status = LoanStatus.completed
        logger.info("Loan completed", extra={"ctx": {"loan_id": loan.id}})
    db.flush()

    name = borrower_name(db, loan)
    outcome = posting.post_best_effort(
        db,
        registry,
        journal_role=posting.LOAN_PAYMENT_JOURNAL,
        debit_role=posting.CASH,
        credit_role=posting.LOAN_PAYABLE,
        amount=installment.amount,
        debit_description=f"Loan installment payment for {name}",
        credit_description="Reduction in loan payable",
        reference=f"INST-{installment.id}",
        notes=f"Installment payment for loan {loan.id}",
        status=EntryStatus.posted,
    )

    logger.info(
        "Installment paid",
        extra={
            "ctx": {
                "installment_id": installment.id,
                "loan_id": loan.id,
                "remaining_balance": str(loan.remaining_balance),
                "paid_by": actor_id,
            }
        },
    )
    return {"installment": installment, "loan": loan, "posting": outcome}
