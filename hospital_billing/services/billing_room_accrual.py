from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from hospital_billing.models.billing import Invoice
from hospital_billing.models.room import Room
from hospital_billing.services.activity_logger import log_activity
from hospital_billing.services.billing_items import InvoiceItemBuilder
from hospital_billing.services.billing_math import ZERO, line_total, money2
from hospital_billing.services.invoice_service import post_lines, refresh_invoice
from hospital_billing.utils.timezone import utcnow

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass
class AccrualResult:
    processed: int = 0
    total_charges: Decimal = ZERO
    skipped: int = 0
    failed: int = 0
    failed_rooms: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "total_charges": money2(self.total_charges),
            "skipped": self.skipped,
            "failed": self.failed,
            "failed_rooms": list(self.failed_rooms),
        }


# -------------------------
# small helpers
# -------------------------
def whole_days_between(start: datetime, end: datetime) -> int:
    if end <= start:
        return 0
    return int((end - start) // ONE_DAY)


def day_line_name(room: Room, day: datetime) -> str:
    return f"{room.label} - {day.date().isoformat()}"


def _skip_reason(db: Session, room: Room) -> Optional[str]:
    if not room.is_occupied or not room.current_patient_id:
        return "room is vacant"
    if not room.check_in_date:
        return "missing check-in date"
    if not room.current_invoice_id:
        return "no active invoice"
    if db.get(Invoice, room.current_invoice_id) is None:
        return f"active invoice {room.current_invoice_id} no longer exists"
    return None


# -------------------------
# one room
# -------------------------
def accrue_room(db: Session, room: Room, now: datetime,
                user_id: Optional[int] = None) -> Tuple[int, Decimal]:
    """
    Post one room line per whole day elapsed since the last accrual point.

    The accrual point advances by exactly the days posted, so the partial
    day carries forward and a second call within the same day posts nothing.
    Does not commit. Returns (days_posted, amount_posted).
    """
    last = room.last_accrual_at or room.check_in_date
    days = whole_days_between(last, now)
    if days <= 0:
        return 0, ZERO

    inv = db.get(Invoice, room.current_invoice_id)
    builder = InvoiceItemBuilder()
    for n in range(1, days + 1):
        builder.room_day(room.id, day_line_name(room, last + n * ONE_DAY),
                         room.daily_rate)
    lines = builder.build()

    post_lines(db, inv, lines)
    room.last_accrual_at = last + days * ONE_DAY
    refresh_invoice(inv, now)

    amount = money2(sum((line_total(ln.quantity, ln.unit_price) for ln in lines),
                        ZERO))
    log_activity(
        db,
        type_="room",
        title="Daily room charges",
        description=
        f"{days} day(s) for {room.label} posted to {inv.invoice_number} ({amount})",
        user_id=user_id,
        related_id=inv.id,
    )
    return days, amount


# -------------------------
# public API
# -------------------------
def process_daily_room_charges(db: Session,
                               now: Optional[datetime] = None,
                               user_id: Optional[int] = None) -> AccrualResult:
    """
    Batch accrual over every occupied room.
    Each room commits on its own; a failing room is rolled back, logged and
    counted while the rest carry on.
    """
    now = now or utcnow()
    result = AccrualResult()

    room_ids = [
        rid for (rid, ) in db.query(Room.id).filter(
            Room.is_occupied.is_(True)).order_by(Room.id.asc()).all()
    ]
    for room_id in room_ids:
        room = db.get(Room, room_id)
        if room is None:
            continue

        reason = _skip_reason(db, room)
        if reason:
            logger.warning("Room accrual skipped for room %s: %s",
                           room.room_number, reason)
            result.skipped += 1
            continue

        room_number = room.room_number
        try:
            days, amount = accrue_room(db, room, now, user_id=user_id)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.exception("Room accrual failed for room %s", room_number)
            result.failed += 1
            result.failed_rooms.append({
                "room_id": room_id,
                "room_number": room_number,
                "error": str(e),
            })
            continue

        if days:
            result.processed += 1
            result.total_charges = money2(result.total_charges + amount)

    logger.info(
        "Room accrual finished: processed=%s total=%s skipped=%s failed=%s",
        result.processed, result.total_charges, result.skipped, result.failed)
    return result


def accrue_for_invoice(db: Session,
                       invoice_id: int,
                       now: Optional[datetime] = None) -> int:
    """
    Bring an invoice up to date before it is shown, when it is some room's
    active invoice. Returns the number of days posted.
    """
    room = (db.query(Room).filter(
        Room.current_invoice_id == int(invoice_id),
        Room.is_occupied.is_(True),
    ).first())
    if room is None or _skip_reason(db, room):
        return 0

    room_number = room.room_number
    try:
        days, _ = accrue_room(db, room, now or utcnow())
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Room accrual on view failed for room %s", room_number)
        return 0
    return days
