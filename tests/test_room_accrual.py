from datetime import timedelta
from decimal import Decimal

import pytest

from hospital_billing.models import Invoice, InvoiceItem, Room
from hospital_billing.services.billing_room_accrual import (
    accrue_for_invoice,
    process_daily_room_charges,
)
from hospital_billing.services.errors import ConflictError, ValidationError
from hospital_billing.services.room_service import (
    assign_patient,
    discharge_patient,
    room_occupancy,
    update_room,
)

from conftest import T0


def _room_lines(db, invoice_id):
    return (db.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice_id,
                                         InvoiceItem.item_type == "room")
            .order_by(InvoiceItem.id).all())


def test_assign_opens_invoice_with_admission_fee_and_first_day(db, room, patient):
    assign_patient(db, room.id, patient_id=patient.id, now=T0)

    r = db.get(Room, room.id)
    assert r.is_occupied and r.current_patient_id == patient.id
    assert r.check_in_date == T0
    assert r.last_accrual_at == T0

    inv = db.get(Invoice, r.current_invoice_id)
    assert [i.item_name for i in inv.items] == [
        "Admission Fee", "Room 101 (General) - 2026-03-10"
    ]
    assert inv.subtotal == Decimal("2100.00")
    assert inv.total == Decimal("2520.00")
    assert inv.due_date == T0 + timedelta(days=30)


def test_accrual_posts_once_per_elapsed_day(db, room, patient):
    assign_patient(db, room.id, patient_id=patient.id, now=T0)
    invoice_id = db.get(Room, room.id).current_invoice_id

    first = process_daily_room_charges(db, now=T0 + timedelta(days=1, hours=2))
    assert first.processed == 1
    assert first.total_charges == Decimal("1500.00")
    assert len(_room_lines(db, invoice_id)) == 2

    again = process_daily_room_charges(db, now=T0 + timedelta(days=1, hours=20))
    assert again.processed == 0
    assert again.total_charges == Decimal("0")
    assert len(_room_lines(db, invoice_id)) == 2

    # partial day carried forward: accrual point is exactly T0 + 1 day
    assert db.get(Room, room.id).last_accrual_at == T0 + timedelta(days=1)

    later = process_daily_room_charges(db, now=T0 + timedelta(days=3, hours=1))
    assert later.processed == 1
    assert later.total_charges == Decimal("3000.00")
    names = [i.item_name for i in _room_lines(db, invoice_id)]
    assert names[-2:] == ["Room 101 (General) - 2026-03-12", "Room 101 (General) - 2026-03-13"]

    inv = db.get(Invoice, invoice_id)
    assert inv.subtotal == Decimal("600.00") + 4 * Decimal("1500.00")
    assert inv.total == inv.subtotal + inv.service_charge


def test_new_rate_applies_to_future_days_only(db, room, patient):
    assign_patient(db, room.id, patient_id=patient.id, now=T0)
    update_room(db, room.id, data={"daily_rate": Decimal("1800.00")})

    process_daily_room_charges(db, now=T0 + timedelta(days=1))
    lines = _room_lines(db, db.get(Room, room.id).current_invoice_id)
    assert [ln.unit_price for ln in lines] == [Decimal("1500.00"), Decimal("1800.00")]


def test_rooms_without_invoice_or_checkin_are_skipped(db, room, patient):
    r = db.get(Room, room.id)
    r.is_occupied = True
    r.current_patient_id = patient.id
    db.commit()

    result = process_daily_room_charges(db, now=T0)
    assert result.skipped == 1
    assert result.processed == 0
    assert result.failed == 0


def test_failure_in_one_room_does_not_stop_the_batch(db, room, icu_room, patient, other_patient):
    assign_patient(db, room.id, patient_id=patient.id, now=T0)
    assign_patient(db, icu_room.id, patient_id=other_patient.id, now=T0)

    # corrupt the cached total of a line on the first room's invoice
    broken_invoice = db.get(Room, room.id).current_invoice_id
    line = _room_lines(db, broken_invoice)[0]
    line.total_price = Decimal("1.00")
    db.commit()

    result = process_daily_room_charges(db, now=T0 + timedelta(days=2))
    assert result.failed == 1
    assert result.failed_rooms[0]["room_number"] == "101"
    assert result.processed == 1
    assert result.total_charges == Decimal("16000.00")

    # failed room rolled back: no new lines, accrual point unchanged
    assert len(_room_lines(db, broken_invoice)) == 1
    assert db.get(Room, room.id).last_accrual_at == T0


def test_invoice_view_brings_room_charges_up_to_date(db, room, patient):
    assign_patient(db, room.id, patient_id=patient.id, now=T0)
    invoice_id = db.get(Room, room.id).current_invoice_id

    assert accrue_for_invoice(db, invoice_id, now=T0 + timedelta(hours=5)) == 0
    assert accrue_for_invoice(db, invoice_id, now=T0 + timedelta(days=2)) == 2
    assert len(_room_lines(db, invoice_id)) == 3


def test_discharge_posts_final_days_and_frees_room(db, room, patient):
    assign_patient(db, room.id, patient_id=patient.id, now=T0)

    r, invoice_id = discharge_patient(db, room.id, now=T0 + timedelta(days=1, hours=3))
    assert not r.is_occupied
    assert r.current_patient_id is None
    assert r.check_in_date is None
    assert r.current_invoice_id is None
    assert len(_room_lines(db, invoice_id)) == 2

    with pytest.raises(ConflictError):
        discharge_patient(db, room.id, now=T0 + timedelta(days=2))


def test_assign_conflicts(db, room, icu_room, patient, other_patient):
    assign_patient(db, room.id, patient_id=patient.id, now=T0)

    with pytest.raises(ConflictError):
        assign_patient(db, room.id, patient_id=other_patient.id, now=T0)
    with pytest.raises(ConflictError):
        assign_patient(db, icu_room.id, patient_id=patient.id, now=T0)


def test_occupancy_fields_not_editable(db, room):
    with pytest.raises(ValidationError):
        update_room(db, room.id, data={"is_occupied": True})


def test_occupancy_summary(db, room, icu_room, patient):
    assert room_occupancy(db)["occupancy_rate"] == 0

    assign_patient(db, icu_room.id, patient_id=patient.id, now=T0)
    summary = room_occupancy(db)
    assert summary["total"] == 2
    assert summary["occupied"] == 1
    assert summary["available"] == 1
    assert summary["occupancy_rate"] == 50
    by_type = {t["room_type"]: t for t in summary["by_type"]}
    assert by_type["ICU"]["occupied"] == 1
    assert by_type["General"]["occupied"] == 0


def test_occupancy_with_no_rooms(db):
    assert room_occupancy(db) == {
        "total": 0, "occupied": 0, "available": 0, "occupancy_rate": 0, "by_type": []
    }


def test_room_pointing_at_deleted_invoice_is_skipped(db, room, icu_room, patient, other_patient):
    assign_patient(db, icu_room.id, patient_id=other_patient.id, now=T0)

    r = db.get(Room, room.id)
    r.is_occupied = True
    r.current_patient_id = patient.id
    r.check_in_date = T0
    r.last_accrual_at = T0
    r.current_invoice_id = 9999
    db.commit()

    result = process_daily_room_charges(db, now=T0 + timedelta(days=1))
    assert result.skipped == 1
    assert result.failed == 0
    assert result.processed == 1
    assert db.get(Room, room.id).last_accrual_at == T0
    assert accrue_for_invoice(db, 9999, now=T0 + timedelta(days=1)) == 0

    # discharge still frees the room
    freed, invoice_id = discharge_patient(db, room.id, now=T0 + timedelta(days=1))
    assert invoice_id == 9999
    assert not freed.is_occupied


def test_blank_room_number_or_type_rejected_on_update(db, room):
    with pytest.raises(ValidationError):
        update_room(db, room.id, data={"room_number": "   "})
    with pytest.raises(ValidationError):
        update_room(db, room.id, data={"room_type": "  "})
    assert db.get(Room, room.id).room_number == "101"
