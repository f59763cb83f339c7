# FILE: hospital_billing/services/payment_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from hospital_billing.models.billing import Invoice, Payment, PaymentMethod
from hospital_billing.models.user import User
from hospital_billing.services.activity_logger import log_activity
from hospital_billing.services.billing_math import money2
from hospital_billing.services.errors import (
    BillingError,
    NotFoundError,
    ValidationError,
)
from hospital_billing.services.invoice_service import refresh_invoice
from hospital_billing.utils.timezone import utcnow

logger = logging.getLogger(__name__)


def _method_value(x) -> str:
    if hasattr(x, "value"):
        return str(x.value)
    try:
        return PaymentMethod(str(x)).value
    except ValueError:
        raise ValidationError(
            f"Unknown payment method '{x}'",
            details={"allowed": [m.value for m in PaymentMethod]},
        )


def record_payment(
    db: Session,
    *,
    invoice_id: int,
    amount,
    method,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> Payment:
    """
    Insert the payment and recompute paid_amount (sum of all payments) and
    status in the same transaction. Overpayment is accepted.
    """
    now = now or utcnow()
    amt = money2(amount)
    if amt <= 0:
        raise ValidationError("Payment amount must be > 0",
                              details={"amount": str(amt)})
    method_value = _method_value(method)

    inv = (db.query(Invoice).options(selectinload(Invoice.items),
                                     selectinload(Invoice.payments),
                                     selectinload(Invoice.patient)).filter(
                                         Invoice.id == int(invoice_id)).with_for_update().first())
    if not inv:
        raise NotFoundError.for_entity("Invoice", invoice_id)

    try:
        pay = Payment(
            amount=amt,
            method=method_value,
            reference=(reference or "").strip() or None,
            notes=notes,
            paid_at=now,
            created_by=getattr(user, "id", None),
        )
        inv.payments.append(pay)
        refresh_invoice(inv, now)
        db.flush()

        log_activity(
            db,
            type_="payment",
            title="Payment received",
            description=
            f"{amt} by {method_value} for {inv.invoice_number} ({inv.patient.name if inv.patient else '-'})",
            user_id=getattr(user, "id", None),
            related_id=inv.id,
        )
        db.commit()
    except BillingError:
        db.rollback()
        raise

    db.refresh(pay)
    logger.info("Payment %s recorded on %s: %s (%s)", pay.id,
                inv.invoice_number, amt, method_value)
    return pay


def list_payments(db: Session, *, invoice_id: Optional[int] = None) -> List[Payment]:
    q = db.query(Payment)
    if invoice_id is not None:
        q = q.filter(Payment.invoice_id == int(invoice_id))
    return q.order_by(Payment.paid_at.desc(), Payment.id.desc()).all()
