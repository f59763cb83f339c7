# FILE: hospital_billing/services/dashboard_service.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from hospital_billing.core.config import settings
from hospital_billing.models.activity import ActivityLog
from hospital_billing.models.billing import Invoice, InvoiceStatus, Payment
from hospital_billing.models.medicine import Medicine
from hospital_billing.models.room import Room
from hospital_billing.services.billing_math import (
    ZERO,
    classify_status,
    compute_outstanding,
    money2,
)
from hospital_billing.utils.timezone import utcnow

# ---------- Helpers: time range ----------


def _month_range(now: datetime) -> Tuple[datetime, datetime]:
    """[first day of this month, first day of next month)"""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


# ---------- Stats ----------


def dashboard_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()

    total_outstanding = ZERO
    pending_amount = ZERO
    pending_invoices = 0
    overdue_invoices = 0
    for total, paid, due_date in db.query(Invoice.total, Invoice.paid_amount,
                                          Invoice.due_date).all():
        outstanding = compute_outstanding(total, paid)
        status = classify_status(outstanding, due_date, now)
        if outstanding > 0:
            total_outstanding += outstanding
        if status == InvoiceStatus.PENDING:
            pending_invoices += 1
            pending_amount += outstanding
        elif status == InvoiceStatus.OVERDUE:
            overdue_invoices += 1

    start, end = _month_range(now)
    monthly_revenue = (db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.paid_at >= start, Payment.paid_at < end).scalar())

    low_stock = (db.query(Medicine).filter(
        Medicine.stock_quantity <= Medicine.low_stock_threshold).all())
    critical = [m for m in low_stock if int(m.stock_quantity or 0) <= settings.CRITICAL_STOCK_LEVEL]

    occupied_rooms = db.query(func.count(Room.id)).filter(Room.is_occupied.is_(True)).scalar()
    total_rooms = db.query(func.count(Room.id)).scalar()

    return {
        "total_outstanding": money2(total_outstanding),
        "monthly_revenue": money2(monthly_revenue),
        "pending_invoices": pending_invoices,
        "pending_amount": money2(pending_amount),
        "overdue_invoices": overdue_invoices,
        "low_stock_items": len(low_stock),
        "critical_items": len(critical),
        "occupied_rooms": int(occupied_rooms or 0),
        "total_rooms": int(total_rooms or 0),
    }


def recent_activity(db: Session, limit: int = 20) -> List[ActivityLog]:
    return (db.query(ActivityLog).order_by(ActivityLog.created_at.desc(),
                                           ActivityLog.id.desc()).limit(limit).all())
