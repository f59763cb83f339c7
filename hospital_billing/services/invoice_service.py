# File: hospital_billing/services/invoice_service.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from hospital_billing.core.config import settings
from hospital_billing.models.billing import Invoice, ItemType
from hospital_billing.models.medicine import Medicine, MedicalService
from hospital_billing.models.patient import Patient
from hospital_billing.models.room import Room
from hospital_billing.models.user import User
from hospital_billing.services.activity_logger import log_activity
from hospital_billing.services.billing_items import (
    ChargeLine,
    InvoiceItemBuilder,
    MedicineCharge,
    charge_line_from_input,
    to_invoice_item,
)
from hospital_billing.services.billing_math import (
    MONEY_LIMIT,
    classify_status,
    compute_invoice_totals,
    compute_outstanding,
    line_total,
    money2,
)
from hospital_billing.services.errors import (
    BillingError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hospital_billing.services.id_gen import next_invoice_number
from hospital_billing.utils.timezone import as_naive_utc, utcnow

logger = logging.getLogger(__name__)


# ============================================================
# Loading
# ============================================================
def _invoice_query(db: Session):
    return db.query(Invoice).options(
        selectinload(Invoice.patient),
        selectinload(Invoice.items),
        selectinload(Invoice.payments),
    )


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    inv = _invoice_query(db).filter(Invoice.id == int(invoice_id)).first()
    if not inv:
        raise NotFoundError.for_entity("Invoice", invoice_id)
    return inv


def _user_id(user: Optional[User]) -> Optional[int]:
    return getattr(user, "id", None)


# ============================================================
# Totals
# ============================================================
def refresh_invoice(inv: Invoice, now: Optional[datetime] = None) -> Invoice:
    """
    Rebuild subtotal / service charge / total / paid / status from the
    invoice's own items and payments. Raises ComputationInvariantError when a
    line's cached total is wrong.
    """
    totals = compute_invoice_totals(inv.items or [], inv.payments or [],
                                    inv.due_date, now or utcnow())
    if totals.total >= MONEY_LIMIT:
        raise ValidationError(
            f"Invoice total {totals.total} exceeds the largest storable amount",
            details={"limit": str(MONEY_LIMIT)},
        )
    inv.subtotal = totals.subtotal
    inv.service_charge = totals.service_charge
    inv.total = totals.total
    inv.paid_amount = totals.paid_amount
    inv.status = totals.status.value
    return inv


# ============================================================
# Building lines from API rows
# ============================================================
def resolve_lines(db: Session, rows: Iterable[Any]) -> Tuple[ChargeLine, ...]:
    """
    rows: objects with item_type, item_ref_id, item_name, quantity, unit_price.
    Missing name / price fall back to the referenced catalogue entry.
    """
    builder = InvoiceItemBuilder()
    for row in rows:
        kind = getattr(row, "item_type", None)
        kind = getattr(kind, "value", kind)
        ref_id = getattr(row, "item_ref_id", None)
        name = (getattr(row, "item_name", None) or "").strip()
        price = getattr(row, "unit_price", None)

        if kind == ItemType.MEDICINE.value:
            med = db.get(Medicine, ref_id) if ref_id else None
            if not med:
                raise NotFoundError.for_entity("Medicine", ref_id)
            name = name or med.name
            price = med.unit_price if price is None else price
        elif kind == ItemType.ROOM.value:
            room = db.get(Room, ref_id) if ref_id else None
            if not room:
                raise NotFoundError.for_entity("Room", ref_id)
            name = name or room.label
            price = room.daily_rate if price is None else price
        elif kind == ItemType.MEDICAL_SERVICE.value:
            svc = db.get(MedicalService, ref_id) if ref_id else None
            if not svc:
                raise NotFoundError.for_entity("Medical service", ref_id)
            name = name or svc.name
            price = svc.default_price if price is None else price
        elif price is None:
            raise ValidationError(f"Unit price is required for service '{name}'")

        builder.add(
            charge_line_from_input(
                kind,
                name=name,
                quantity=int(getattr(row, "quantity", 1) or 0),
                unit_price=price,
                ref_id=ref_id,
            ))
    lines = builder.build()

    for line in lines:
        amount = line_total(line.quantity, line.unit_price)
        if amount >= MONEY_LIMIT:
            raise ValidationError(
                f"Line '{line.name}' amount {amount} is too large",
                details={"quantity": line.quantity, "unit_price": str(line.unit_price)},
            )
    return lines


def _dispense(db: Session, line: MedicineCharge) -> None:
    med = (db.query(Medicine).filter(
        Medicine.id == int(line.medicine_id)).with_for_update().first())
    if not med:
        raise NotFoundError.for_entity("Medicine", line.medicine_id)
    available = int(med.stock_quantity or 0)
    if available < int(line.quantity):
        raise ConflictError(
            f"Insufficient stock for {med.name}: {available} {med.unit} available",
            details={
                "medicine_id": med.id,
                "available": available,
                "requested": int(line.quantity),
            },
        )
    med.stock_quantity = available - int(line.quantity)


def post_lines(db: Session, inv: Invoice, lines: Sequence[ChargeLine]) -> None:
    """Append lines to the invoice; medicines are dispensed from stock."""
    for line in lines:
        if isinstance(line, MedicineCharge):
            _dispense(db, line)
        inv.items.append(to_invoice_item(line))


# ============================================================
# Public API
# ============================================================
def create_invoice(
    db: Session,
    *,
    patient_id: int,
    lines: Sequence[ChargeLine],
    due_date: Optional[datetime] = None,
    description: Optional[str] = None,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
    commit: bool = True,
) -> Invoice:
    """
    Invoice + items + stock decrement in one transaction.
    commit=False lets callers (room assignment) fold it into their own.
    """
    now = now or utcnow()
    patient = db.get(Patient, int(patient_id))
    if not patient:
        raise NotFoundError.for_entity("Patient", patient_id)

    try:
        inv = Invoice(
            invoice_number=next_invoice_number(db, on_date=now),
            patient_id=patient.id,
            due_date=as_naive_utc(due_date)
            or now + timedelta(days=settings.INVOICE_DUE_DAYS),
            description=description,
            created_by=_user_id(user),
            created_at=now,
        )
        inv.patient = patient
        db.add(inv)
        post_lines(db, inv, lines)
        refresh_invoice(inv, now)
        db.flush()

        log_activity(
            db,
            type_="invoice",
            title="Invoice created",
            description=
            f"{inv.invoice_number} for {patient.name} ({patient.patient_code}), total {inv.total}",
            user_id=_user_id(user),
            related_id=inv.id,
        )
        if commit:
            db.commit()
            db.refresh(inv)
            logger.info("Invoice %s created for patient %s, total %s",
                        inv.invoice_number, patient.id, inv.total)
    except BillingError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(f"Could not create invoice: {e.orig}")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Invoice creation failed for patient %s", patient.id)
        raise
    return inv


def append_items(
    db: Session,
    invoice_id: int,
    lines: Sequence[ChargeLine],
    *,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> Invoice:
    if not lines:
        raise ValidationError("Provide at least one item")
    inv = get_invoice(db, invoice_id)
    try:
        post_lines(db, inv, lines)
        refresh_invoice(inv, now)
        log_activity(
            db,
            type_="invoice",
            title="Invoice items added",
            description=f"{len(lines)} item(s) added to {inv.invoice_number}, total {inv.total}",
            user_id=_user_id(user),
            related_id=inv.id,
        )
        db.commit()
    except BillingError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Adding items to invoice %s failed", invoice_id)
        raise
    db.refresh(inv)
    return inv


def update_invoice(
    db: Session,
    invoice_id: int,
    *,
    data: Dict[str, Any],
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> Invoice:
    """Header fields only (description, due_date); posted lines stay as they are."""
    inv = get_invoice(db, invoice_id)
    if "description" in data:
        inv.description = data["description"]
    if data.get("due_date") is not None:
        inv.due_date = as_naive_utc(data["due_date"])
    refresh_invoice(inv, now)
    log_activity(
        db,
        type_="invoice",
        title="Invoice updated",
        description=f"{inv.invoice_number} details updated",
        user_id=_user_id(user),
        related_id=inv.id,
    )
    db.commit()
    db.refresh(inv)
    return inv


# ============================================================
# Views
# ============================================================
def invoice_details(inv: Invoice, now: Optional[datetime] = None) -> Dict[str, Any]:
    outstanding = compute_outstanding(inv.total, inv.paid_amount)
    status = classify_status(outstanding, inv.due_date, now or utcnow())
    return {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "patient_id": inv.patient_id,
        "patient": inv.patient,
        "subtotal": money2(inv.subtotal),
        "service_charge": money2(inv.service_charge),
        "total": money2(inv.total),
        "paid_amount": money2(inv.paid_amount),
        "outstanding_amount": outstanding,
        "status": status.value,
        "due_date": inv.due_date,
        "description": inv.description,
        "created_at": inv.created_at,
        "items": list(inv.items or []),
        "payments": list(inv.payments or []),
    }


def list_invoices(
    db: Session,
    *,
    patient_id: Optional[int] = None,
    outstanding_only: bool = False,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    q = _invoice_query(db)
    if patient_id is not None:
        q = q.filter(Invoice.patient_id == int(patient_id))
    rows = [invoice_details(inv, now) for inv in q.order_by(Invoice.id.desc()).all()]
    if outstanding_only:
        rows = [r for r in rows if r["outstanding_amount"] > 0]
    return rows
