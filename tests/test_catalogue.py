from decimal import Decimal


def test_medicine_crud_and_low_stock(client, doctor_headers, medicine):
    r = client.post("/api/medicines", headers=doctor_headers, json={
        "name": "Insulin Glargine", "category": "Diabetes", "unit_price": "350.00",
        "stock_quantity": 5, "low_stock_threshold": 10, "unit": "vials",
    })
    assert r.status_code == 201, r.text
    insulin = r.json()
    assert insulin["is_low_stock"] is True

    dup = client.post("/api/medicines", headers=doctor_headers, json={
        "name": "paracetamol 500MG", "category": "Analgesics", "unit_price": "2.00",
    })
    assert dup.status_code == 409

    low = client.get("/api/medicines/low-stock", headers=doctor_headers).json()
    assert [m["name"] for m in low] == ["Insulin Glargine"]

    r = client.put(f"/api/medicines/{insulin['id']}", headers=doctor_headers,
                   json={"stock_quantity": 50})
    assert r.status_code == 200
    assert r.json()["is_low_stock"] is False
    assert client.get("/api/medicines/low-stock", headers=doctor_headers).json() == []

    found = client.get("/api/medicines?q=insulin", headers=doctor_headers).json()
    assert len(found) == 1
    assert Decimal(found[0]["unit_price"]) == Decimal("350.00")


def test_medical_services_admin_only_writes(client, admin_headers, doctor_headers, xray):
    payload = {"name": "MRI Brain", "category": "Radiology", "default_price": "9500.00"}
    assert client.post("/api/medical-services", headers=doctor_headers,
                       json=payload).status_code == 403

    r = client.post("/api/medical-services", headers=admin_headers, json=payload)
    assert r.status_code == 201, r.text

    listed = client.get("/api/medical-services?category=Radiology",
                        headers=doctor_headers).json()
    assert [s["name"] for s in listed] == ["MRI Brain", "X-Ray Chest"]
