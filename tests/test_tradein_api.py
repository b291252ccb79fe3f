from __future__ import annotations

OWNER = {"X-User-Id": "user-1"}
OTHER = {"X-User-Id": "user-2"}
ADMIN = {"X-Operator": "ops@example.com", "X-Role": "admin"}


def _create(client, payload, headers=OWNER):
    resp = client.post("/trade-in", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_estimate_is_a_quote_only(client, db, device_payload):
    resp = client.post("/trade-in/estimate", json=device_payload)
    assert resp.status_code == 200
    body = resp.json()
    assert body["estimated_price"] == 352
    assert body["currency"] == "EUR"
    assert body["breakdown"]["base_price"] == 400
    assert body["breakdown"]["storage_multiplier"] == 1.1


def test_estimate_rejects_unknown_device_type(client, device_payload):
    resp = client.post("/trade-in/estimate", json={**device_payload, "device_type": "toaster"})
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "request_validation_error"


def test_create_and_read_own_request(client, dispatcher, device_payload):
    created = _create(client, device_payload)
    assert created["status"] == "pending"
    assert created["estimated_price"] == 352
    assert created["owner_id"] == "user-1"
    assert [h["status"] for h in created["history"]] == ["pending"]
    assert dispatcher.statuses == ["pending"]

    resp = client.get(f"/trade-in/{created['id']}", headers=OWNER)
    assert resp.status_code == 200
    assert resp.json()["id"] == created["id"]


def test_other_owner_gets_not_found(client, device_payload):
    created = _create(client, device_payload)
    resp = client.get(f"/trade-in/{created['id']}", headers=OTHER)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "trade_in_not_found"


def test_missing_identity_is_unauthorized(client, device_payload):
    assert client.post("/trade-in", json=device_payload).status_code == 401
    assert client.get("/trade-in/my").status_code == 401


def test_admin_routes_need_operator_role(client):
    assert client.get("/admin/trade-in").status_code == 401
    resp = client.get("/admin/trade-in", headers={"X-Operator": "ops@example.com", "X-Role": "customer"})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "operator_role_required"


def test_empty_my_list(client):
    resp = client.get("/trade-in/my", headers=OWNER)
    assert resp.status_code == 200
    body = resp.json()
    assert body["items"] == []
    assert body["stats"] is None
    assert body["pagination"] == {"total": 0, "pages": 0, "page": 1, "limit": 10}


def test_my_list_rejects_bad_sort(client):
    resp = client.get("/trade-in/my", params={"sortBy": "owner_id"}, headers=OWNER)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_sort_field"


def test_my_list_filters_by_status(client, device_payload):
    _create(client, device_payload)
    created = _create(client, device_payload)
    client.put(f"/trade-in/{created['id']}/cancel", headers=OWNER)

    resp = client.get("/trade-in/my", params={"status": "cancelled"}, headers=OWNER)
    body = resp.json()
    assert [i["id"] for i in body["items"]] == [created["id"]]
    assert body["stats"]["status_counts"] == {"cancelled": 1}


def test_admin_status_flow(client, dispatcher, device_payload):
    created = _create(client, device_payload)
    url = f"/admin/trade-in/{created['id']}/status"

    resp = client.put(url, json={"status": "completed"}, headers=ADMIN)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "final_price_required"

    resp = client.put(url, json={"status": "approved"}, headers=ADMIN)
    assert resp.status_code == 422

    resp = client.put(url, json={"status": "completed", "final_price": 310}, headers=ADMIN)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "completed"
    assert resp.json()["final_price"] == 310

    resp = client.put(url, json={"status": "cancelled"}, headers=ADMIN)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "terminal_status"

    history = client.get(f"/admin/trade-in/{created['id']}/history", headers=ADMIN).json()
    assert [h["status"] for h in history] == ["pending", "completed"]
    assert history[-1]["updated_by"] == "ops@example.com"
    assert dispatcher.statuses == ["pending", "completed"]


def test_admin_stale_expected_version(client, device_payload):
    created = _create(client, device_payload)
    url = f"/admin/trade-in/{created['id']}/status"
    assert client.put(url, json={"status": "reviewing"}, headers=ADMIN).status_code == 200

    resp = client.put(url, json={"status": "offerMade", "expected_version": 1}, headers=ADMIN)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "trade_in_version_conflict"


def test_admin_inspection(client, device_payload):
    created = _create(client, device_payload)
    resp = client.put(
        f"/admin/trade-in/{created['id']}/inspection",
        json={"condition": "fair", "functionality_test": {"screen": True}, "accessories": ["box"]},
        headers=ADMIN,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "inspected"
    # 352 * 0.6 + 5
    assert body["final_price"] == 216
    assert body["inspection_results"]["condition"] == "fair"


def test_images_endpoints(client, device_payload):
    created = _create(client, {**device_payload, "images": ["front.jpg"]})
    resp = client.put(
        f"/trade-in/{created['id']}/upload-images",
        json={"images": ["back.jpg"]},
        headers=OWNER,
    )
    assert resp.status_code == 200
    assert resp.json()["images"] == ["front.jpg", "back.jpg"]

    resp = client.get(f"/admin/trade-in/{created['id']}/images", headers=ADMIN)
    assert resp.json() == ["front.jpg", "back.jpg"]

    assert client.get("/admin/trade-in/missing/images", headers=ADMIN).status_code == 404


def test_admin_list_by_user(client, device_payload):
    _create(client, device_payload)
    _create(client, device_payload, headers=OTHER)

    resp = client.get("/admin/trade-in", params={"userId": "user-2"}, headers=ADMIN)
    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total"] == 1
    assert body["items"][0]["owner_id"] == "user-2"
    assert body["stats"]["total_trade_ins"] == 1


def test_admin_status_accepts_camel_case_body(client, device_payload):
    created = _create(client, device_payload)
    resp = client.put(
        f"/admin/trade-in/{created['id']}/status",
        json={"status": "completed", "finalPrice": 150, "trackingNumber": "T1", "note": "paid out"},
        headers=ADMIN,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["final_price"] == 150
    assert body["tracking_number"] == "T1"
    assert body["history"][-1]["note"] == "paid out"


def test_admin_inspection_accepts_camel_case_body(client, device_payload):
    created = _create(client, device_payload)
    resp = client.put(
        f"/admin/trade-in/{created['id']}/inspection",
        json={
            "condition": "good",
            "functionalityTest": {"screen": True, "battery": False},
            "cosmetic": {"back": "good"},
            "accessories": ["charger"],
            "notes": "battery at 71%",
        },
        headers=ADMIN,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    # 352 * 0.8 * 0.7 * 0.88 + 5
    assert body["final_price"] == 178
    assert body["inspection_results"]["functionality_test"] == {"screen": True, "battery": False}


def test_create_accepts_camel_case_body(client):
    resp = client.post(
        "/trade-in",
        json={
            "deviceType": "smartphone",
            "brand": "Apple",
            "model": "iPhone 13",
            "condition": "good",
            "specifications": {"storage": "128GB"},
            "bankDetails": {"iban": "DE89370400440532013000", "accountHolder": "Jane Doe"},
        },
        headers=OWNER,
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["device_type"] == "smartphone"
    assert body["estimated_price"] == 352
    assert body["bank_details"] == {"iban": "DE89370400440532013000", "account_holder": "Jane Doe"}


def test_create_coerces_loose_specification_values(client, device_payload):
    payload = {
        **device_payload,
        "specifications": {"storage": "128GB", "imei": 356938035643809, "color": 7, "accessories": "charger"},
    }
    created = _create(client, payload)
    # 400 * 0.8 * 1.1 * 1.05
    assert created["estimated_price"] == 370
    assert created["specifications"]["imei"] == "356938035643809"
    assert created["specifications"]["color"] == "7"
    assert created["specifications"]["accessories"] == ["charger"]


def test_list_device_type_filter_ignores_case(client, device_payload):
    _create(client, device_payload)
    resp = client.get("/trade-in/my", params={"deviceType": "Smartphone"}, headers=OWNER)
    assert resp.status_code == 200
    assert resp.json()["pagination"]["total"] == 1
