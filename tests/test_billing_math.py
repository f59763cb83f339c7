from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from hospital_billing.models.billing import InvoiceStatus
from hospital_billing.services.billing_math import (
    classify_status,
    compute_invoice_totals,
    compute_outstanding,
    compute_service_charge,
    compute_subtotal,
    line_total,
    money2,
)
from hospital_billing.services.errors import ComputationInvariantError

NOW = datetime(2026, 3, 10, 12, 0, 0)


def item(qty, price, name="Line", total=None):
    return SimpleNamespace(
        item_name=name,
        quantity=qty,
        unit_price=Decimal(price),
        total_price=line_total(qty, price) if total is None else Decimal(total),
    )


def pay(amount):
    return SimpleNamespace(amount=Decimal(amount))


def test_admission_example_totals_and_full_payment():
    items = [item(1, "600.00", "Admission Fee"), item(1, "1500.00", "Room 101")]

    before = compute_invoice_totals(items, [], NOW + timedelta(days=30), NOW)
    assert before.subtotal == Decimal("2100.00")
    assert before.service_charge == Decimal("420.00")
    assert before.total == Decimal("2520.00")
    assert before.status == InvoiceStatus.PENDING

    after = compute_invoice_totals(items, [pay("2520.00")], NOW + timedelta(days=30), NOW)
    assert after.outstanding == Decimal("0.00")
    assert after.status == InvoiceStatus.PAID


def test_no_items_is_zero_and_paid():
    totals = compute_invoice_totals([], [], NOW + timedelta(days=30), NOW)
    assert totals.subtotal == Decimal("0.00")
    assert totals.service_charge == Decimal("0.00")
    assert totals.total == Decimal("0.00")
    assert totals.status == InvoiceStatus.PAID


@pytest.mark.parametrize(
    "lines",
    [
        [(1, "0.01")],
        [(3, "2.50"), (2, "8.00")],
        [(7, "12.35"), (1, "999.99"), (4, "0.33")],
        [(10, "45.00"), (1, "8000.00"), (2, "1200.00"), (13, "0.07")],
    ],
)
def test_total_is_subtotal_plus_twenty_percent(lines):
    items = [item(q, p) for q, p in lines]
    totals = compute_invoice_totals(items, [pay("1.00")], None, NOW)

    expected_subtotal = money2(sum(Decimal(q) * Decimal(p) for q, p in lines))
    assert totals.subtotal == expected_subtotal
    assert totals.service_charge == money2(expected_subtotal * Decimal("0.20"))
    assert totals.total == totals.subtotal + totals.service_charge
    assert totals.outstanding == totals.total - Decimal("1.00")


def test_service_charge_rounds_half_up():
    assert compute_service_charge(Decimal("0.125")) == Decimal("0.03")
    assert compute_service_charge(Decimal("12.35")) == Decimal("2.47")
    assert compute_service_charge(Decimal("10.11")) == Decimal("2.02")


def test_outstanding_may_go_negative_and_counts_as_paid():
    outstanding = compute_outstanding(Decimal("100.00"), Decimal("150.00"))
    assert outstanding == Decimal("-50.00")
    assert classify_status(outstanding, NOW - timedelta(days=1), NOW) == InvoiceStatus.PAID


def test_status_overdue_only_when_past_due_and_unpaid():
    assert classify_status(Decimal("10"), NOW - timedelta(seconds=1), NOW) == InvoiceStatus.OVERDUE
    assert classify_status(Decimal("10"), NOW + timedelta(days=1), NOW) == InvoiceStatus.PENDING
    assert classify_status(Decimal("10"), None, NOW) == InvoiceStatus.PENDING


def test_mismatched_cached_line_total_is_rejected():
    bad = item(2, "10.00", "Tampered", total="25.00")
    with pytest.raises(ComputationInvariantError) as ei:
        compute_subtotal([item(1, "5.00"), bad])
    assert ei.value.details["expected"] == "20.00"
    assert ei.value.status_code == 500
