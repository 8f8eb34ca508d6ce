from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_actor_id, get_db, get_registry
from erp.app.db.models.core_types import BorrowerType, LoanStatus
from erp.app.schemas.loans import LoanApprovalRead, LoanInstallmentRead, LoanRead, LoanSummaryRead
from erp.services import loans
from erp.services.posting import PostingRegistry

router = APIRouter(prefix="/loans")


class LoanCreate(BaseModel):
    borrower_type: BorrowerType
    borrower_id: int
    loan_amount: Decimal = Field(ge=0)
    interest_rate: Decimal = Field(default=Decimal("0"), ge=0)
    installment_number: int = Field(ge=1)
    start_date: date
    description: str | None = None


class LoanUpdate(BaseModel):
    borrower_type: BorrowerType | None = None
    borrower_id: int | None = None
    loan_amount: Decimal | None = Field(default=None, ge=0)
    interest_rate: Decimal | None = Field(default=None, ge=0)
    installment_number: int | None = Field(default=None, ge=1)
    start_date: date | None = None
    description: str | None = None


@router.get("", response_model=list[LoanRead])
def list_loans(
    status: LoanStatus | None = None,
    borrower_type: BorrowerType | None = None,
    borrower_id: int | None = None,
    db: Session = Depends(get_db),
):
    return loans.list_loans(db, status=status, borrower_type=borrower_type, borrower_id=borrower_id)


@router.post("", response_model=LoanRead, status_code=201)
def create_loan(
    payload: LoanCreate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    loan = loans.create_loan(db, **payload.model_dump(), created_by=actor_id)
    db.commit()
    db.refresh(loan)
    return loan


@router.get("/{loan_id}", response_model=LoanRead)
def get_loan(loan_id: int, db: Session = Depends(get_db)):
    return loans.get_loan(db, loan_id)


@router.get("/{loan_id}/summary", response_model=LoanSummaryRead)
def get_loan_summary(loan_id: int, db: Session = Depends(get_db)):
    return loans.loan_summary(db, loan_id)


@router.get("/{loan_id}/installments", response_model=list[LoanInstallmentRead])
def list_loan_installments(loan_id: int, db: Session = Depends(get_db)):
    loans.get_loan(db, loan_id)
    return loans.list_installments(db, loan_id=loan_id)


@router.patch("/{loan_id}", response_model=LoanRead)
def update_loan(loan_id: int, payload: LoanUpdate, db: Session = Depends(get_db)):
    loan = loans.update_loan(db, loan_id, **payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(loan)
    return loan


@router.post("/{loan_id}/approve", response_model=LoanApprovalRead)
def approve_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
    registry: PostingRegistry = Depends(get_registry),
):
    result = loans.approve_loan(db, loan_id, actor_id=actor_id, registry=registry)
    db.commit()
    db.refresh(result["loan"])
    return result


@router.post("/{loan_id}/reject", response_model=LoanRead)
def reject_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
):
    loan = loans.reject_loan(db, loan_id, actor_id=actor_id)
    db.commit()
    db.refresh(loan)
    return loan


@router.delete("/{loan_id}", status_code=204)
def delete_loan(loan_id: int, db: Session = Depends(get_db)):
    loans.delete_loan(db, loan_id)
    db.commit()
