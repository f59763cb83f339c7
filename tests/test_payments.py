from decimal import Decimal

import pytest

from hospital_billing.models import Invoice
from hospital_billing.services.errors import NotFoundError, ValidationError
from hospital_billing.services.payment_service import record_payment


@pytest.fixture
def invoice(client, doctor_headers, patient):
    r = client.post("/api/invoices", headers=doctor_headers, json={
        "patient_id": patient.id,
        "items": [
            {"item_type": "service", "item_name": "Admission Fee", "unit_price": "600.00"},
            {"item_type": "service", "item_name": "Room 101", "unit_price": "1500.00"},
        ],
    })
    assert r.status_code == 201, r.text
    return r.json()


def _pay(client, headers, invoice_id, amount, method="Cash"):
    return client.post("/api/payments", headers=headers, json={
        "invoice_id": invoice_id, "amount": amount, "method": method,
    })


def test_full_payment_settles_invoice(client, doctor_headers, invoice):
    r = _pay(client, doctor_headers, invoice["id"], "2520.00")
    assert r.status_code == 201, r.text
    assert r.json()["method"] == "Cash"

    inv = client.get(f"/api/invoices/{invoice['id']}", headers=doctor_headers).json()
    assert Decimal(inv["paid_amount"]) == Decimal("2520.00")
    assert Decimal(inv["outstanding_amount"]) == Decimal("0.00")
    assert inv["status"] == "paid"
    assert len(inv["payments"]) == 1


def test_partial_payments_sum_up(client, doctor_headers, invoice):
    _pay(client, doctor_headers, invoice["id"], "1000.00", "Card")
    _pay(client, doctor_headers, invoice["id"], "20.00", "Mobile Banking")

    inv = client.get(f"/api/invoices/{invoice['id']}", headers=doctor_headers).json()
    assert Decimal(inv["paid_amount"]) == Decimal("1020.00")
    assert Decimal(inv["outstanding_amount"]) == Decimal("1500.00")
    assert inv["status"] == "pending"

    listed = client.get(f"/api/invoices/{invoice['id']}/payments", headers=doctor_headers).json()
    assert {p["method"] for p in listed} == {"Card", "Mobile Banking"}


def test_overpayment_goes_negative_and_is_paid(client, doctor_headers, invoice):
    _pay(client, doctor_headers, invoice["id"], "3000.00", "Bank Transfer")
    inv = client.get(f"/api/invoices/{invoice['id']}", headers=doctor_headers).json()
    assert Decimal(inv["outstanding_amount"]) == Decimal("-480.00")
    assert inv["status"] == "paid"


def test_zero_amount_and_bad_method_rejected(client, doctor_headers, invoice):
    assert _pay(client, doctor_headers, invoice["id"], "0").status_code == 422
    assert _pay(client, doctor_headers, invoice["id"], "10", "Bitcoin").status_code == 422


def test_unknown_invoice(client, doctor_headers):
    r = _pay(client, doctor_headers, 424242, "10.00")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


def test_service_level_validation(db, invoice):
    with pytest.raises(ValidationError):
        record_payment(db, invoice_id=invoice["id"], amount="-5", method="Cash")
    with pytest.raises(ValidationError):
        record_payment(db, invoice_id=invoice["id"], amount="5", method="Barter")
    with pytest.raises(NotFoundError):
        record_payment(db, invoice_id=777, amount="5", method="Cash")

    pay = record_payment(db, invoice_id=invoice["id"], amount="100", method="Insurance",
                         reference=" CLM-1 ")
    assert pay.reference == "CLM-1"
    assert db.get(Invoice, invoice["id"]).paid_amount == Decimal("100.00")
