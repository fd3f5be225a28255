# test_api_flow.py
from lounge.util.security import create_token


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _seed(client, auth_headers):
    jprint("PUT /devices", client.put("/devices", headers=auth_headers, json={
        "category": "PS5", "seats": ["PS5-1", "PS5-2", "PS5-3"],
    }))
    for duration, price in (("30 mins", 120), ("1 hour", 200)):
        jprint("POST /pricing/rules", client.post("/pricing/rules", headers=auth_headers, json={
            "kind": "regular", "category": "PS5", "duration": duration, "person_count": 1, "price": price,
        }))
    item = jprint("POST /inventory/items", client.post("/inventory/items", headers=auth_headers, json={
        "name": "Coke", "price": 40, "cost_price": 11, "min_stock_level": 2,
    }))
    jprint("POST batch 1", client.post(f"/inventory/items/{item['id']}/batches", headers=auth_headers, json={
        "quantity": 3, "cost_price": 10, "purchase_date": "2026-03-01T09:00:00Z",
    }))
    jprint("POST batch 2", client.post(f"/inventory/items/{item['id']}/batches", headers=auth_headers, json={
        "quantity": 4, "cost_price": 12, "purchase_date": "2026-03-02T09:00:00Z",
    }))
    return item


def test_healthz_and_auth(client):
    assert client.get("/healthz").json() == {"ok": True}
    assert client.get("/bookings").status_code == 401
    assert client.get("/bookings", headers={"Authorization": "Bearer nope"}).status_code == 401
    staff = {"Authorization": f"Bearer {create_token('u-2', role='staff')}"}
    assert client.put("/devices", headers=staff, json={"category": "PC", "seats": []}).status_code == 403


def test_session_lifecycle_over_http(client, auth_headers, rng_suffix):
    item = _seed(client, auth_headers)

    q = jprint("POST /pricing/quote", client.post("/pricing/quote", headers=auth_headers, json={
        "category": "PS5", "duration": "1 hour", "promotions": [{"kind": "discount", "percentage": 10}],
    }))
    assert q["final_price"] == 180.0
    assert q["discount_breakdown"]["path"] == "promotional"

    b = jprint("POST /bookings", client.post("/bookings", headers=auth_headers, json={
        "category": "PS5", "seat_name": "PS5-1", "customer_name": f"Ravi {rng_suffix}", "duration": "1 hour",
    }))
    assert b["status"] == "active" and b["price"] == 200.0

    r = client.post("/bookings", headers=auth_headers, json={
        "category": "PS5", "seat_name": "PS5-1", "customer_name": "Someone", "duration": "1 hour",
    })
    assert r.status_code == 409 and r.json()["code"] == "seat_unavailable"

    b = jprint("POST food", client.post(f"/bookings/{b['id']}/food", headers=auth_headers, json={
        "food_item_id": item["id"], "quantity": 5,
    }))
    assert b["food_total"] == 200.0 and b["amount_due"] == 400.0
    assert b["food_orders"][0]["unit_cost"] == 10.8

    low = jprint("GET /inventory/low_stock", client.get("/inventory/low_stock", headers=auth_headers))
    assert [(x["name"], x["current_stock"]) for x in low] == [("Coke", 2)]

    r = client.post(f"/bookings/{b['id']}/food", headers=auth_headers, json={"food_item_id": item["id"], "quantity": 3})
    assert r.status_code == 409 and r.json()["code"] == "insufficient_stock"

    jprint("pause", client.post(f"/bookings/{b['id']}/pause", headers=auth_headers))
    jprint("resume", client.post(f"/bookings/{b['id']}/resume", headers=auth_headers))

    r = client.post(f"/bookings/{b['id']}/payments", headers=auth_headers, json={"method": "cash", "cash_amount": 500})
    assert r.status_code == 422 and r.json()["code"] == "overpayment_not_allowed"
    b = jprint("pay split", client.post(f"/bookings/{b['id']}/payments", headers=auth_headers, json={
        "method": "split", "cash_amount": 150, "upi_amount": 250,
    }))
    assert b["payment_status"] == "paid" and b["payment_method"] == "split"

    done = jprint("complete", client.post(f"/bookings/{b['id']}/complete", headers=auth_headers))
    assert done["status"] == "completed"
    r = client.post(f"/bookings/{b['id']}/pause", headers=auth_headers)
    assert r.status_code == 409 and r.json()["code"] == "invalid_transition"

    hist = jprint("GET /bookings/history", client.get("/bookings/history", headers=auth_headers))
    assert hist[0]["booking_id"] == b["id"] and hist[0]["food_orders"][0]["quantity"] == 5
    assert jprint("GET /bookings", client.get("/bookings", headers=auth_headers)) == []

    acts = jprint("GET /activity", client.get("/activity", headers=auth_headers, params={"entity_id": b["id"]}))
    assert {"booking_started", "food_order_added", "payment_settled", "booking_completed"} <= {a["action"] for a in acts}
    pays = jprint("GET /activity/payments", client.get("/activity/payments", headers=auth_headers))
    assert [p["amount"] for p in pays] == [400.0]


def test_group_flow_reports_partial_failure(client, auth_headers):
    _seed(client, auth_headers)
    g = jprint("POST /groups", client.post("/groups", headers=auth_headers, json={
        "category": "PS5", "booking_type": "fixed_slot", "group_name": "Squad",
    }))
    ids = []
    for seat in ("PS5-1", "PS5-2"):
        b = jprint("POST /bookings", client.post("/bookings", headers=auth_headers, json={
            "category": "PS5", "seat_name": seat, "customer_name": seat, "duration": "1 hour", "group_id": g["id"],
        }))
        ids.append(b["id"])
    jprint("pause one", client.post(f"/bookings/{ids[1]}/pause", headers=auth_headers))

    r = client.post(f"/groups/{g['id']}/pause", headers=auth_headers)
    assert r.status_code == 409
    body = r.json()
    assert body["code"] == "group_operation_failed"
    assert body["succeeded"] == [ids[0]]
    assert body["failed"][ids[1]]["code"] == "invalid_transition"

    out = jprint("complete all", client.post(f"/groups/{g['id']}/complete", headers=auth_headers))
    assert sorted(out["succeeded"]) == sorted(ids)
    g = jprint("GET group", client.get(f"/groups/{g['id']}", headers=auth_headers))
    assert g["dissolved_at"] is not None


def test_history_window_needs_timezone(client, auth_headers):
    r = client.get("/bookings/history", headers=auth_headers, params={"since": "2026-03-10T10:00:00"})
    assert r.status_code == 422
    r = client.get("/bookings/history", headers=auth_headers,
                   params={"since": "2026-03-10T10:00:00Z", "until": "2026-03-11T10:00:00Z"})
    assert r.status_code == 200 and r.json() == []


def test_stock_adjustment_over_http(client, auth_headers):
    item = _seed(client, auth_headers)
    out = jprint("remove", client.post(f"/inventory/items/{item['id']}/adjust", headers=auth_headers, json={
        "quantity": 5, "type": "remove", "notes": "spoiled",
    }))
    assert out["item"]["current_stock"] == 2
    assert out["consumption"]["low_stock"] is True
    acts = jprint("GET /activity", client.get("/activity", headers=auth_headers, params={"entity_id": item["id"]}))
    assert "stock_remove" in {a["action"] for a in acts}
