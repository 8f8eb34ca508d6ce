from datetime import date
from decimal import Decimal

import pytest

from erp.app.db.models.core_types import BorrowerType, EntryStatus, InstallmentStatus, LoanStatus, PaymentMethod
from erp.app.db.models.models_v1 import Account, JournalEntry
from erp.services import loans
from erp.errors import NotFoundError, ReferencedError, StateConflictError, ValidationError


def _loan(db_session, borrower, **overrides):
    fields = dict(
        borrower_type=BorrowerType.organization,
        borrower_id=borrower.id,
        loan_amount=Decimal("1200"),
        interest_rate=Decimal("0"),
        installment_number=12,
        start_date=date(2024, 1, 1),
    )
    fields.update(overrides)
    return loans.create_loan(db_session, **fields)


def test_loan_lifecycle_twelve_monthly_installments(db_session, org, user):
    """
    GIVEN
    - loan 1200 at 0% in 12 installments starting 2024-01-01

    THEN
    - approval creates 12 x 100.00 due 2024-01-01 .. 2024-12-01, balance 1200
    - paying all 12 -> balance 0, status completed
    """
    # ---------- ARRANGE ----------
    loan = _loan(db_session, org, created_by=user.id)
    assert loan.status == LoanStatus.pending
    assert loan.total_payable == Decimal("1200.00")
    assert loan.remaining_balance == Decimal("1200.00")

    # ---------- ACT: approve ----------
    result = loans.approve_loan(db_session, loan.id, actor_id=user.id, today=date(2024, 1, 1))

    installments = result["installments"]
    assert loan.status == LoanStatus.active
    assert loan.approved_by == user.id
    assert [i.amount for i in installments] == [Decimal("100.00")] * 12
    assert installments[0].due_date == date(2024, 1, 1)
    assert installments[-1].due_date == date(2024, 12, 1)
    assert all(i.status == InstallmentStatus.pending for i in installments)

    # ---------- ACT: pay everything ----------
    for installment in installments:
        loans.pay_installment(db_session, installment.id, {"payment_method": "cash"}, actor_id=user.id)

    # ---------- ASSERT ----------
    assert loan.remaining_balance == Decimal("0.00")
    assert loan.status == LoanStatus.completed
    assert all(i.payment_method == PaymentMethod.cash for i in installments)


def test_installments_sum_exactly_to_total_payable(db_session, org):
    loan = _loan(db_session, org, loan_amount=Decimal("1000"), interest_rate=Decimal("10"), installment_number=3)

    result = loans.approve_loan(db_session, loan.id, today=date(2024, 1, 1))

    amounts = [i.amount for i in result["installments"]]
    assert amounts == [Decimal("366.67"), Decimal("366.67"), Decimal("366.66")]
    assert sum(amounts) == loan.total_payable == Decimal("1100.00")


def test_compute_loan_terms_rejects_bad_input():
    with pytest.raises(ValidationError):
        loans.compute_loan_terms(Decimal("100"), Decimal("0"), 0)
    with pytest.raises(ValidationError):
        loans.compute_loan_terms(Decimal("-1"), Decimal("0"), 1)


def test_month_end_start_dates_are_clamped():
    assert loans.installment_schedule(date(2024, 1, 31), 3) == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]


def test_past_installments_are_overdue_at_approval(db_session, org):
    loan = _loan(db_session, org, installment_number=6)

    result = loans.approve_loan(db_session, loan.id, today=date(2024, 3, 15))

    statuses = [i.status for i in result["installments"]]
    assert statuses == [InstallmentStatus.overdue] * 3 + [InstallmentStatus.pending] * 3


def test_only_pending_loans_are_approved_updated_or_rejected(db_session, org):
    loan = _loan(db_session, org)
    loans.update_loan(db_session, loan.id, loan_amount=Decimal("600"), installment_number=6)
    assert loan.installment_amount == Decimal("100.00")
    assert loan.remaining_balance == Decimal("600.00")

    loans.approve_loan(db_session, loan.id, today=date(2024, 1, 1))

    with pytest.raises(StateConflictError):
        loans.approve_loan(db_session, loan.id)
    with pytest.raises(StateConflictError):
        loans.update_loan(db_session, loan.id, description="late change")
    with pytest.raises(StateConflictError):
        loans.reject_loan(db_session, loan.id)
    with pytest.raises(ReferencedError):
        loans.delete_loan(db_session, loan.id)


def test_rejected_loan(db_session, org, user):
    loan = _loan(db_session, org)

    loans.reject_loan(db_session, loan.id, actor_id=user.id)

    assert loan.status == LoanStatus.rejected
    with pytest.raises(StateConflictError):
        loans.approve_loan(db_session, loan.id)


def test_unknown_borrower(db_session):
    with pytest.raises(NotFoundError):
        loans.create_loan(
            db_session,
            borrower_type=BorrowerType.user,
            borrower_id=999_999,
            loan_amount=Decimal("10"),
            interest_rate=Decimal("0"),
            installment_number=1,
            start_date=date(2024, 1, 1),
        )


def test_user_borrower_is_resolved(db_session, user):
    loan = _loan(db_session, user, borrower_type=BorrowerType.user)

    assert loans.resolve_borrower(db_session, loan) is user
    assert loans.borrower_name(db_session, loan) == "Mona"


def test_paying_twice_is_a_conflict(db_session, org):
    loan = _loan(db_session, org, installment_number=2)
    first = loans.approve_loan(db_session, loan.id, today=date(2024, 1, 1))["installments"][0]

    loans.pay_installment(db_session, first.id)

    with pytest.raises(StateConflictError):
        loans.pay_installment(db_session, first.id)
    assert loan.remaining_balance == Decimal("600.00")


def test_unknown_payment_method_changes_nothing(db_session, org):
    loan = _loan(db_session, org, installment_number=2)
    first = loans.approve_loan(db_session, loan.id, today=date(2024, 1, 1))["installments"][0]

    with pytest.raises(ValidationError):
        loans.pay_installment(db_session, first.id, {"payment_method": "barter"})

    assert first.status == InstallmentStatus.pending
    assert loan.remaining_balance == Decimal("1200.00")


def test_defaulted_loan_completes_once_fully_repaid(db_session, org):
    """
    GIVEN
    - a defaulted loan with two installments left

    THEN
    - the first payment keeps it defaulted
    - the payment that clears the balance completes it
    """
    loan = _loan(db_session, org, installment_number=2)
    first, second = loans.approve_loan(db_session, loan.id, today=date(2024, 1, 1))["installments"]
    loan.status = LoanStatus.defaulted
    db_session.flush()

    result = loans.pay_installment(db_session, first.id)
    assert result["loan"].remaining_balance == Decimal("600.00")
    assert result["loan"].status == LoanStatus.defaulted

    result = loans.pay_installment(db_session, second.id)
    assert result["loan"].remaining_balance == Decimal("0.00")
    assert result["loan"].status == LoanStatus.completed


def test_loan_postings_move_cash_and_loan_payable(db_session, org, registry):
    """
    GIVEN
    - full ledger mapping

    THEN
    - approval posts debit loan-payable / credit cash for total payable
    - each payment posts debit cash / credit loan-payable
    """
    cash = db_session.get(Account, registry.account_id("cash-account"))
    payable = db_session.get(Account, registry.account_id("loan-payable-account"))
    loan = _loan(db_session, org, installment_number=2)

    approval = loans.approve_loan(db_session, loan.id, registry=registry, today=date(2024, 1, 1))

    entry = db_session.get(JournalEntry, approval["posting"].entry_id)
    assert entry.status == EntryStatus.posted
    assert entry.reference == f"LOAN-{loan.id}"
    assert payable.amount == Decimal("1200.00")
    assert cash.amount == Decimal("-1200.00")

    paid = loans.pay_installment(db_session, approval["installments"][0].id, registry=registry)

    assert paid["posting"].posted is True
    assert payable.amount == Decimal("600.00")
    assert cash.amount == Decimal("-600.00")


def test_loan_summary_and_overdue_listing(db_session, org):
    loan = _loan(db_session, org, installment_number=4)
    installments = loans.approve_loan(db_session, loan.id, today=date(2024, 2, 15))["installments"]
    loans.pay_installment(db_session, installments[0].id)

    summary = loans.loan_summary(db_session, loan.id)["summary"]

    assert summary["total_installments"] == 4
    assert summary["paid_installments"] == 1
    assert summary["overdue_installments"] == 1
    assert summary["pending_installments"] == 2
    assert summary["total_paid"] == Decimal("300.00")
    assert summary["total_pending"] == Decimal("900.00")
    assert summary["next_due_date"] == date(2024, 3, 1)

    overdue = loans.list_overdue_installments(db_session, today=date(2024, 2, 15))
    assert [i.id for i in overdue] == [installments[1].id]
