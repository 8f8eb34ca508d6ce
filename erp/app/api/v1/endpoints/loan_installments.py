from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from erp.app.api.deps import get_actor_id, get_db, get_registry
from erp.app.db.models.core_types import InstallmentStatus, PaymentMethod
from erp.app.schemas.loans import InstallmentPaymentRead, LoanInstallmentRead
from erp.services import loans
from erp.services.posting import PostingRegistry

router = APIRouter(prefix="/loan-installments")


class PaymentIn(BaseModel):
    payment_date: date | None = None
    payment_method: PaymentMethod | None = None
    notes: str | None = Field(default=None, max_length=500)


@router.get("", response_model=list[LoanInstallmentRead])
def list_installments(
    loan_id: int | None = None,
    status: InstallmentStatus | None = None,
    due_from: date | None = None,
    due_to: date | None = None,
    db: Session = Depends(get_db),
):
    return loans.list_installments(db, loan_id=loan_id, status=status, due_from=due_from, due_to=due_to)


@router.get("/overdue", response_model=list[LoanInstallmentRead])
def list_overdue(db: Session = Depends(get_db)):
    return loans.list_overdue_installments(db)


@router.get("/{installment_id}", response_model=LoanInstallmentRead)
def get_installment(installment_id: int, db: Session = Depends(get_db)):
    return loans.get_installment(db, installment_id)


@router.post("/{installment_id}/pay", response_model=InstallmentPaymentRead)
def pay_installment(
    installment_id: int,
    payload: PaymentIn | None = None,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(get_actor_id),
    registry: PostingRegistry = Depends(get_registry),
):
    result = loans.pay_installment(
        db,
        installment_id,
        payload.model_dump(exclude_none=True) if payload else None,
        actor_id=actor_id,
        registry=registry,
    )
    db.commit()
    db.refresh(result["installment"])
    db.refresh(result["loan"])
    return result


@router.delete("/{installment_id}", status_code=204)
def delete_installment(installment_id: int, db: Session = Depends(get_db)):
    loans.delete_installment(db, installment_id)
    db.commit()
