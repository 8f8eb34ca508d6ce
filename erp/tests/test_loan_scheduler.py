from datetime import date
from decimal import Decimal

import pytest

from erp.app.db.models.core_types import BorrowerType, InstallmentStatus, LoanStatus
from erp.services import loan_scheduler, loans


class RecordingMailer:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    def send_payment_reminder(self, recipient_email, installment, borrower_name):
        if installment.id in self.fail_for:
            raise RuntimeError("smtp down")
        self.sent.append((recipient_email, installment.id, borrower_name))
        return True


@pytest.fixture
def active_loan(db_session, org):
    """Active 3 x 100.00 loan due 2024-01-01, 2024-02-01, 2024-03-01."""
    loan = loans.create_loan(
        db_session,
        borrower_type=BorrowerType.organization,
        borrower_id=org.id,
        loan_amount=Decimal("300"),
        interest_rate=Decimal("0"),
        installment_number=3,
        start_date=date(2024, 1, 1),
    )
    result = loans.approve_loan(db_session, loan.id, today=date(2024, 1, 1))
    return loan, result["installments"]


def test_mark_overdue_is_idempotent(db_session, active_loan):
    """
    GIVEN
    - installments due Jan 1, Feb 1, Mar 1, all pending

    THEN
    - on Feb 10 the first two become overdue
    - running again changes nothing
    """
    _, installments = active_loan

    assert loan_scheduler.mark_overdue_installments_in(db_session, date(2024, 2, 10)) == 2
    assert loan_scheduler.mark_overdue_installments_in(db_session, date(2024, 2, 10)) == 0

    db_session.expire_all()
    assert [i.status for i in installments] == [
        InstallmentStatus.overdue,
        InstallmentStatus.overdue,
        InstallmentStatus.pending,
    ]


def test_paid_installments_are_never_marked_overdue(db_session, active_loan):
    _, installments = active_loan
    loans.pay_installment(db_session, installments[0].id)

    assert loan_scheduler.mark_overdue_installments_in(db_session, date(2024, 1, 20)) == 0


def test_loans_overdue_for_more_than_thirty_days_default(db_session, active_loan):
    loan, _ = active_loan
    loan_scheduler.mark_overdue_installments_in(db_session, date(2024, 1, 20))

    # Jan 1 is only 19 days late
    assert loan_scheduler.check_defaulted_loans_in(db_session, date(2024, 1, 20)) == 0

    loan_scheduler.mark_overdue_installments_in(db_session, date(2024, 2, 5))
    assert loan_scheduler.check_defaulted_loans_in(db_session, date(2024, 2, 5)) == 1
    assert loan_scheduler.check_defaulted_loans_in(db_session, date(2024, 2, 5)) == 0

    db_session.expire_all()
    assert loan.status == LoanStatus.defaulted


def test_reminders_cover_the_next_three_days(db_session, active_loan, org):
    _, installments = active_loan
    mailer = RecordingMailer()

    sent = loan_scheduler.send_payment_reminders_in(db_session, date(2024, 1, 29), mailer)

    assert sent == 1
    assert mailer.sent == [(org.email, installments[1].id, org.trade_name)]


def test_one_failing_reminder_does_not_stop_the_others(db_session, active_loan):
    _, installments = active_loan
    mailer = RecordingMailer(fail_for={installments[1].id})

    sent = loan_scheduler.send_payment_reminders_in(db_session, date(2024, 1, 30), mailer, days_ahead=31)

    assert sent == 1
    assert [item[1] for item in mailer.sent] == [installments[2].id]


class BrokenSession:
    def __init__(self):
        self.calls = []

    def execute(self, *args, **kwargs):
        self.calls.append("execute")
        raise RuntimeError("database unreachable")

    def commit(self):
        self.calls.append("commit")

    def rollback(self):
        self.calls.append("rollback")

    def close(self):
        self.calls.append("close")


@pytest.mark.parametrize(
    "job",
    [
        loan_scheduler.mark_overdue_installments,
        loan_scheduler.check_defaulted_loans,
        lambda: loan_scheduler.send_payment_reminders(RecordingMailer()),
    ],
    ids=["mark_overdue", "check_defaulted", "send_reminders"],
)
def test_scheduled_jobs_roll_back_and_never_raise(monkeypatch, job):
    """
    GIVEN
    - a session whose every statement fails

    THEN
    - the job returns normally
    - the session is rolled back and closed, never committed
    """
    session = BrokenSession()
    monkeypatch.setattr(loan_scheduler, "SessionLocal", lambda: session)

    assert job() is None

    assert session.calls == ["execute", "rollback", "close"]
