# FILE: hospital_billing/services/room_service.py
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from hospital_billing.core.config import settings
from hospital_billing.models.billing import Invoice
from hospital_billing.models.patient import Patient
from hospital_billing.models.room import Room
from hospital_billing.models.user import User
from hospital_billing.services.activity_logger import log_activity
from hospital_billing.services.billing_items import InvoiceItemBuilder
from hospital_billing.services.billing_room_accrual import accrue_room, day_line_name
from hospital_billing.services.errors import (
    BillingError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from hospital_billing.services.invoice_service import create_invoice
from hospital_billing.utils.timezone import utcnow

logger = logging.getLogger(__name__)

OCCUPANCY_FIELDS = {
    "is_occupied",
    "current_patient_id",
    "check_in_date",
    "current_invoice_id",
    "last_accrual_at",
}


def get_room(db: Session, room_id: int) -> Room:
    room = db.get(Room, int(room_id))
    if not room:
        raise NotFoundError.for_entity("Room", room_id)
    return room


def _ensure_unique_number(db: Session, room_number: str,
                          exclude_id: Optional[int] = None) -> None:
    q = db.query(Room.id).filter(Room.room_number == room_number)
    if exclude_id is not None:
        q = q.filter(Room.id != exclude_id)
    if q.first():
        raise ConflictError(f"Room number {room_number} already exists")


# ============================================================
# CRUD
# ============================================================
def create_room(db: Session, *, data: Dict[str, Any],
                user: Optional[User] = None) -> Room:
    number = (data.get("room_number") or "").strip()
    if not number:
        raise ValidationError("Room number is required")
    _ensure_unique_number(db, number)
    room_type = (data.get("room_type") or "").strip()
    if not room_type:
        raise ValidationError("Room type is required")

    room = Room(
        room_number=number,
        room_type=room_type,
        daily_rate=data.get("daily_rate"),
        is_occupied=False,
    )
    db.add(room)
    db.flush()
    log_activity(db,
                 type_="room",
                 title="Room added",
                 description=f"{room.label} at {room.daily_rate}/day",
                 user_id=getattr(user, "id", None),
                 related_id=room.id)
    db.commit()
    db.refresh(room)
    return room


def update_room(db: Session, room_id: int, *, data: Dict[str, Any],
                user: Optional[User] = None) -> Room:
    """
    Number / type / rate only. Occupancy changes go through assign and discharge.
    A new daily rate applies to days accrued from now on; posted lines keep theirs.
    """
    room = get_room(db, room_id)
    blocked = sorted(OCCUPANCY_FIELDS & set(data))
    if blocked:
        raise ValidationError(
            "Occupancy is changed through assign / discharge",
            details={"fields": blocked},
        )

    if data.get("room_number") is not None:
        number = data["room_number"].strip()
        if not number:
            raise ValidationError("Room number is required")
        _ensure_unique_number(db, number, exclude_id=room.id)
        room.room_number = number
    if data.get("room_type") is not None:
        room_type = data["room_type"].strip()
        if not room_type:
            raise ValidationError("Room type is required")
        room.room_type = room_type
    if data.get("daily_rate") is not None:
        room.daily_rate = data["daily_rate"]

    log_activity(db,
                 type_="room",
                 title="Room updated",
                 description=f"{room.label} at {room.daily_rate}/day",
                 user_id=getattr(user, "id", None),
                 related_id=room.id)
    db.commit()
    db.refresh(room)
    return room


# ============================================================
# Assign / discharge
# ============================================================
def assign_patient(
    db: Session,
    room_id: int,
    *,
    patient_id: int,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> Room:
    """
    Check a patient into a vacant room and open the room's active invoice
    with the admission fee and the first day at the current rate.
    """
    now = now or utcnow()
    room = get_room(db, room_id)
    if room.is_occupied or room.current_patient_id:
        raise ConflictError(f"{room.label} is already occupied")

    patient = db.get(Patient, int(patient_id))
    if not patient:
        raise NotFoundError.for_entity("Patient", patient_id)

    other = (db.query(Room).filter(Room.current_patient_id == patient.id,
                                   Room.id != room.id).first())
    if other:
        raise ConflictError(
            f"{patient.name} is already assigned to {other.label}",
            details={"room_id": other.id},
        )

    lines = (InvoiceItemBuilder().service(
        "Admission Fee", 1, settings.ADMISSION_FEE).room_day(
            room.id, day_line_name(room, now), room.daily_rate).build())

    try:
        inv = create_invoice(
            db,
            patient_id=patient.id,
            lines=lines,
            description=f"Admission - {room.label}",
            user=user,
            now=now,
            commit=False,
        )
        room.is_occupied = True
        room.current_patient_id = patient.id
        room.check_in_date = now
        room.current_invoice_id = inv.id
        room.last_accrual_at = now

        log_activity(db,
                     type_="room",
                     title="Patient admitted",
                     description=f"{patient.name} assigned to {room.label}",
                     user_id=getattr(user, "id", None),
                     related_id=room.id)
        db.commit()
    except BillingError:
        db.rollback()
        raise

    db.refresh(room)
    logger.info("Patient %s assigned to room %s (invoice %s)", patient.id,
                room.room_number, room.current_invoice_id)
    return room


def discharge_patient(
    db: Session,
    room_id: int,
    *,
    user: Optional[User] = None,
    now: Optional[datetime] = None,
) -> Tuple[Room, Optional[int]]:
    """Final accrual, then clear occupancy. Returns (room, final invoice id)."""
    now = now or utcnow()
    room = get_room(db, room_id)
    if not room.is_occupied:
        raise ConflictError(f"{room.label} is not occupied")

    invoice_id = room.current_invoice_id
    patient = room.current_patient
    try:
        if room.check_in_date and invoice_id and db.get(Invoice, invoice_id):
            accrue_room(db, room, now, user_id=getattr(user, "id", None))

        room.is_occupied = False
        room.current_patient_id = None
        room.check_in_date = None
        room.current_invoice_id = None
        room.last_accrual_at = None

        log_activity(db,
                     type_="room",
                     title="Patient discharged",
                     description=
                     f"{patient.name if patient else 'Patient'} discharged from {room.label}",
                     user_id=getattr(user, "id", None),
                     related_id=room.id)
        db.commit()
    except BillingError:
        db.rollback()
        raise

    db.refresh(room)
    return room, invoice_id


# ============================================================
# Occupancy
# ============================================================
def _rate(occupied: int, total: int) -> int:
    if not total:
        return 0
    return int((Decimal(occupied) * 100 / Decimal(total)).to_integral_value(
        rounding=ROUND_HALF_UP))


def room_occupancy(db: Session) -> Dict[str, Any]:
    rooms = db.query(Room).order_by(Room.room_type.asc(),
                                    Room.room_number.asc()).all()
    total = len(rooms)
    occupied = sum(1 for r in rooms if r.is_occupied)

    by_type: "OrderedDict[str, Dict[str, int]]" = OrderedDict()
    for r in rooms:
        bucket = by_type.setdefault(r.room_type, {"total": 0, "occupied": 0})
        bucket["total"] += 1
        if r.is_occupied:
            bucket["occupied"] += 1

    return {
        "total": total,
        "occupied": occupied,
        "available": total - occupied,
        "occupancy_rate": _rate(occupied, total),
        "by_type": [{
            "room_type": k,
            "total": v["total"],
            "occupied": v["occupied"],
            "available": v["total"] - v["occupied"],
        } for k, v in by_type.items()],
    }
