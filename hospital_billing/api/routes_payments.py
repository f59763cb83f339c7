# FILE: hospital_billing/api/routes_payments.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hospital_billing.api.deps import current_user, get_db, require_staff
from hospital_billing.models.user import User
from hospital_billing.schemas.billing import PaymentCreate, PaymentOut
from hospital_billing.services.payment_service import list_payments, record_payment

router = APIRouter()


@router.get("", response_model=List[PaymentOut])
def get_payments(
    invoice_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return list_payments(db, invoice_id=invoice_id)


@router.post("", response_model=PaymentOut, status_code=201)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    return record_payment(
        db,
        invoice_id=payload.invoice_id,
        amount=payload.amount,
        method=payload.method,
        reference=payload.reference,
        notes=payload.notes,
        user=user,
    )
