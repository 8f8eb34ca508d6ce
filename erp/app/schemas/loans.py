from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from erp.app.db.models.core_types import BorrowerType, InstallmentStatus, LoanStatus, PaymentMethod
from erp.app.schemas.ledger import PostingOutcomeRead


class LoanRead(BaseModel):
    id: int
    borrower_type: BorrowerType
    borrower_id: int
    loan_amount: Decimal
    interest_rate: Decimal
    installment_number: int
    installment_amount: Decimal
    total_payable: Decimal
    remaining_balance: Decimal
    status: LoanStatus
    start_date: date
    description: str | None = None
    created_by: int | None = None
    approved_by: int | None = None

    class Config:
        from_attributes = True


class LoanInstallmentRead(BaseModel):
    id: int
    loan_id: int
    amount: Decimal
    due_date: date
    status: InstallmentStatus
    payment_date: date | None = None
    payment_method: PaymentMethod | None = None
    notes: str | None = None

    class Config:
        from_attributes = True


class LoanApprovalRead(BaseModel):
    loan: LoanRead
    installments: list[LoanInstallmentRead]
    posting: PostingOutcomeRead


class InstallmentPaymentRead(BaseModel):
    installment: LoanInstallmentRead
    loan: LoanRead
    posting: PostingOutcomeRead


class LoanSummary(BaseModel):
    total_installments: int
    paid_installments: int
    pending_installments: int
    overdue_installments: int
    total_paid: Decimal
    total_pending: Decimal
    next_due_date: date | None = None


class LoanSummaryRead(BaseModel):
    loan: LoanRead
    summary: LoanSummary
