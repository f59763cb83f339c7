# hospital_billing/services/billing_math.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable, Optional

from hospital_billing.core.config import settings
from hospital_billing.models.billing import InvoiceStatus
from hospital_billing.services.errors import ComputationInvariantError

Q2 = Decimal("0.01")
ZERO = Decimal("0")
# exclusive bound of a Numeric(12, 2) column
MONEY_LIMIT = Decimal(10)**10

SERVICE_CHARGE_RATE: Decimal = settings.SERVICE_CHARGE_RATE


def D(x) -> Decimal:
    try:
        return Decimal(str(x if x is not None else 0))
    except InvalidOperation:
        return Decimal("0")


def money2(x) -> Decimal:
    return D(x).quantize(Q2, rounding=ROUND_HALF_UP)


def line_total(quantity, unit_price) -> Decimal:
    """The only place an item's total_price is produced."""
    return money2(D(quantity) * D(unit_price))


def verify_line(item: Any) -> Decimal:
    """
    Returns quantity * unit_price for the item, raising when its cached
    total_price disagrees.
    """
    expected = line_total(item.quantity, item.unit_price)
    cached = money2(item.total_price)
    if cached != expected:
        raise ComputationInvariantError(
            f"Line '{item.item_name}' total {cached} != "
            f"{item.quantity} x {money2(item.unit_price)} = {expected}",
            details={
                "item_id": getattr(item, "id", None),
                "cached": str(cached),
                "expected": str(expected),
            },
        )
    return expected


def compute_subtotal(items: Iterable[Any]) -> Decimal:
    subtotal = ZERO
    for it in items:
        subtotal += verify_line(it)
    return money2(subtotal)


def compute_service_charge(subtotal, rate: Optional[Decimal] = None) -> Decimal:
    # flat rate on the whole subtotal, medicines and services included
    r = SERVICE_CHARGE_RATE if rate is None else D(rate)
    return money2(D(subtotal) * r)


def compute_total(subtotal, service_charge) -> Decimal:
    return money2(D(subtotal) + D(service_charge))


def compute_outstanding(total, paid_amount) -> Decimal:
    # may go negative on overpayment; callers treat <= 0 as paid
    return money2(D(total) - D(paid_amount))


def classify_status(outstanding, due_date: Optional[datetime],
                    now: datetime) -> InvoiceStatus:
    if D(outstanding) <= 0:
        return InvoiceStatus.PAID
    if due_date is not None and due_date < now:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    service_charge: Decimal
    total: Decimal
    paid_amount: Decimal
    outstanding: Decimal
    status: InvoiceStatus


def compute_invoice_totals(
    items: Iterable[Any],
    payments: Iterable[Any],
    due_date: Optional[datetime],
    now: datetime,
) -> InvoiceTotals:
    subtotal = compute_subtotal(items)
    service_charge = compute_service_charge(subtotal)
    total = compute_total(subtotal, service_charge)
    paid = money2(sum((D(p.amount) for p in payments), ZERO))
    outstanding = compute_outstanding(total, paid)
    return InvoiceTotals(
        subtotal=subtotal,
        service_charge=service_charge,
        total=total,
        paid_amount=paid,
        outstanding=outstanding,
        status=classify_status(outstanding, due_date, now),
    )
