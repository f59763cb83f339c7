import re

from hospital_billing.utils.timezone import utcnow


def _login(client, username, password):
    return client.post("/api/auth/login", json={"username": username, "password": password})


def test_login_and_me(client, admin):
    r = _login(client, "admin", "secret123")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "admin"

    me = client.get("/api/auth/me",
                    headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "admin"


def test_bad_password(client, admin):
    r = _login(client, "admin", "nope")
    assert r.status_code == 401
    assert r.json()["ok"] is False
    assert r.json()["error"]["code"] == "http_error"


def test_garbage_token(client):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_inactive_user_is_refused(client, db, doctor, doctor_headers):
    doctor.is_active = False
    db.commit()
    assert client.get("/api/auth/me", headers=doctor_headers).status_code == 403


def test_change_password(client, doctor, doctor_headers):
    r = client.post("/api/auth/change-password", headers=doctor_headers,
                    json={"current_password": "wrong-one", "new_password": "newpass1"})
    assert r.status_code == 400

    r = client.post("/api/auth/change-password", headers=doctor_headers,
                    json={"current_password": "secret123", "new_password": "newpass1"})
    assert r.status_code == 200
    assert _login(client, "doctor", "secret123").status_code == 401
    assert _login(client, "doctor", "newpass1").status_code == 200


def test_room_management_is_admin_only(client, doctor_headers, admin_headers):
    payload = {"room_number": "501", "room_type": "Private", "daily_rate": "3500.00"}
    r = client.post("/api/rooms", headers=doctor_headers, json=payload)
    assert r.status_code == 403

    r = client.post("/api/rooms", headers=admin_headers, json=payload)
    assert r.status_code == 201, r.text
    assert r.json()["is_occupied"] is False

    r = client.post("/api/rooms", headers=admin_headers, json=payload)
    assert r.status_code == 409


def test_room_update_rejects_occupancy_fields(client, admin_headers, room):
    r = client.put(f"/api/rooms/{room.id}", headers=admin_headers,
                   json={"is_occupied": True})
    assert r.status_code == 422


def test_assign_and_discharge_over_http(client, doctor_headers, room, patient):
    r = client.post(f"/api/rooms/{room.id}/assign", headers=doctor_headers,
                    json={"patient_id": patient.id})
    assert r.status_code == 200, r.text
    assert r.json()["current_patient"]["id"] == patient.id

    r = client.post(f"/api/rooms/{room.id}/discharge", headers=doctor_headers)
    assert r.status_code == 200, r.text
    invoice_id = r.json()["invoice_id"]
    assert r.json()["room"]["is_occupied"] is False

    inv = client.get(f"/api/invoices/{invoice_id}", headers=doctor_headers).json()
    assert inv["items"][0]["item_name"] == "Admission Fee"


def test_patient_registration_generates_code(client, doctor_headers):
    r = client.post("/api/patients", headers=doctor_headers,
                    json={"name": "  Nasima Akter ", "phone": "01811111111"})
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["name"] == "Nasima Akter"
    assert re.fullmatch(rf"PAT-{utcnow().year}-0001", body["patient_code"])

    second = client.post("/api/patients", headers=doctor_headers, json={"name": "Jamal"})
    assert second.json()["patient_code"].endswith("-0002")

    dup = client.post("/api/patients", headers=doctor_headers,
                      json={"name": "Other", "patient_code": body["patient_code"]})
    assert dup.status_code == 409
    assert dup.json()["error"]["code"] == "conflict"

    found = client.get("/api/patients?q=nasima", headers=doctor_headers).json()
    assert [p["id"] for p in found] == [body["id"]]


def test_unknown_patient_is_404(client, doctor_headers):
    r = client.get("/api/patients/999", headers=doctor_headers)
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


def test_blank_room_number_rejected_over_http(client, admin_headers, room):
    r = client.put(f"/api/rooms/{room.id}", headers=admin_headers, json={"room_number": "  "})
    assert r.status_code == 422
    assert r.json()["error"]["msg"] == "Room number is required"
