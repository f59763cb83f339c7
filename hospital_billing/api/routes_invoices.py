# FILE: hospital_billing/api/routes_invoices.py
from __future__ import annotations

from io import BytesIO
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from hospital_billing.api.deps import current_user, get_db, require_staff
from hospital_billing.core.config import settings
from hospital_billing.models.user import User
from hospital_billing.schemas.billing import (
    InvoiceCreate,
    InvoiceDetailOut,
    InvoiceItemsAppend,
    InvoiceOut,
    InvoiceUpdate,
    PaymentOut,
)
from hospital_billing.services import invoice_service
from hospital_billing.services.billing_room_accrual import accrue_for_invoice
from hospital_billing.services.payment_service import list_payments
from hospital_billing.services.pdf_invoice import build_invoice_pdf

router = APIRouter()


@router.get("", response_model=List[InvoiceOut])
def list_invoices(
    patient_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return invoice_service.list_invoices(db, patient_id=patient_id)


@router.get("/outstanding", response_model=List[InvoiceOut])
def outstanding_invoices(
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    return invoice_service.list_invoices(db, outstanding_only=True)


@router.post("", response_model=InvoiceDetailOut, status_code=201)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    lines = invoice_service.resolve_lines(db, payload.items)
    inv = invoice_service.create_invoice(
        db,
        patient_id=payload.patient_id,
        lines=lines,
        due_date=payload.due_date,
        description=payload.description,
        user=user,
    )
    return invoice_service.invoice_details(invoice_service.get_invoice(db, inv.id))


@router.get("/{invoice_id}", response_model=InvoiceDetailOut)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    if settings.ACCRUE_ON_INVOICE_VIEW:
        accrue_for_invoice(db, invoice_id)
    return invoice_service.invoice_details(invoice_service.get_invoice(db, invoice_id))


@router.put("/{invoice_id}", response_model=InvoiceDetailOut)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    inv = invoice_service.update_invoice(db, invoice_id,
                                         data=payload.model_dump(exclude_unset=True),
                                         user=user)
    return invoice_service.invoice_details(inv)


@router.post("/{invoice_id}/items", response_model=InvoiceDetailOut)
def add_invoice_items(
    invoice_id: int,
    payload: InvoiceItemsAppend,
    db: Session = Depends(get_db),
    user: User = Depends(require_staff),
):
    invoice_service.get_invoice(db, invoice_id)
    lines = invoice_service.resolve_lines(db, payload.items)
    inv = invoice_service.append_items(db, invoice_id, lines, user=user)
    return invoice_service.invoice_details(inv)


@router.get("/{invoice_id}/payments", response_model=List[PaymentOut])
def invoice_payments(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    invoice_service.get_invoice(db, invoice_id)
    return list_payments(db, invoice_id=invoice_id)


@router.get("/{invoice_id}/pdf")
def invoice_pdf(
    invoice_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(current_user),
):
    inv = invoice_service.get_invoice(db, invoice_id)
    pdf = build_invoice_pdf(invoice_service.invoice_details(inv))
    return StreamingResponse(
        BytesIO(pdf),
        media_type="application/pdf",
        headers={"Content-Disposition": f"inline; filename={inv.invoice_number}.pdf"},
    )
