REQUESTER_ID = "user-thandi"
VENDOR_ID = "vendor-cape-hire"

ORDER_BODY = {
    "payment_method": "card",
    "items": [
        {
            "item_id": "tent",
            "item_name": "Four-person tent",
            "quantity": 1,
            "unit_price": 100.0,
            "vendor_id": VENDOR_ID,
            "vendor_name": "Cape Outdoor Hire",
        },
        {
            "item_id": "chair",
            "item_name": "Camping chair",
            "quantity": 2,
            "unit_price": 50.0,
            "vendor_id": VENDOR_ID,
            "vendor_name": "Cape Outdoor Hire",
        },
    ],
}


def _create(api_client, body=ORDER_BODY):
    response = api_client.post("/api/orders/", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_read_order(api_client, acting_user):
    order = _create(api_client)

    assert order["status"] == "awaiting_approval"
    assert order["status_display"] == "Awaiting Approval"
    assert order["subtotal"] == 200.0
    assert order["platform_fee"] == 16.0
    assert order["total_amount"] == 216.0
    assert order["user_id"] == REQUESTER_ID
    assert order["user_name"] == "Thandi Nkosi"
    assert "collection_token" not in order

    fetched = api_client.get(f"/api/orders/{order['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["id"] == order["id"]

    listed = api_client.get("/api/orders/")
    assert [o["id"] for o in listed.json()] == [order["id"]]


def test_create_rejects_mixed_vendors(api_client):
    body = {**ORDER_BODY, "items": [ORDER_BODY["items"][0], {**ORDER_BODY["items"][1], "vendor_id": "other"}]}
    response = api_client.post("/api/orders/", json=body)
    assert response.status_code == 400
    assert response.json() == {
        "detail": "All items in an order must come from the same vendor",
        "code": "mixed_vendors",
    }


def test_request_body_validation(api_client):
    body = {**ORDER_BODY, "items": [{**ORDER_BODY["items"][0], "quantity": 0}]}
    assert api_client.post("/api/orders/", json=body).status_code == 422


def test_unknown_order_is_404(api_client):
    response = api_client.get("/api/orders/missing")
    assert response.status_code == 404
    assert response.json()["code"] == "order_not_found"


def test_stranger_cannot_read_order(api_client, acting_user):
    order = _create(api_client)
    acting_user["sub"] = "stranger"
    response = api_client.get(f"/api/orders/{order['id']}")
    assert response.status_code == 403
    assert response.json()["code"] == "unauthorized"


def test_vendor_flow_through_collection(api_client, acting_user, clock):
    order = _create(api_client)
    order_id = order["id"]

    acting_user["sub"] = VENDOR_ID
    pending = api_client.get("/api/orders/vendor/pending").json()
    assert [o["id"] for o in pending] == [order_id]

    approved = api_client.post(f"/api/orders/{order_id}/approve", json={"notes": "See you Friday"})
    assert approved.status_code == 200
    assert approved.json()["status"] == "awaiting_payment"

    again = api_client.post(f"/api/orders/{order_id}/approve", json={})
    assert again.status_code == 409
    assert again.json()["code"] == "not_awaiting_approval"

    webhook = api_client.post(
        "/api/webhooks/payfast",
        data={"payment_status": "COMPLETE", "amount_gross": "216.00", "custom_str1": order_id},
    )
    assert webhook.status_code == 200

    acting_user["sub"] = REQUESTER_ID
    token = api_client.post(f"/api/orders/{order_id}/collection-token")
    assert token.status_code == 200
    assert token.json()["order_id"] == order_id

    clock.advance(seconds=30)
    acting_user["sub"] = VENDOR_ID
    collected = api_client.post("/api/orders/collect", json={"token": token.json()["token"]})
    assert collected.status_code == 200
    assert collected.json()["status"] == "completed"

    reused = api_client.post("/api/orders/collect", json={"token": token.json()["token"]})
    assert reused.status_code == 409
    assert reused.json()["code"] == "token_already_used"

    history = api_client.get(f"/api/orders/{order_id}/history").json()
    assert [h["status"] for h in history] == [
        "awaiting_approval",
        "awaiting_payment",
        "payment_received",
        "completed",
    ]


def test_expired_collection_token(api_client, acting_user, clock):
    order_id = _create(api_client, {**ORDER_BODY, "payment_method": "cash"})["id"]
    acting_user["sub"] = VENDOR_ID
    assert api_client.post(f"/api/orders/{order_id}/approve", json={}).json()["status"] == "cash_payment"

    acting_user["sub"] = REQUESTER_ID
    assert api_client.post("/api/payments/cash", json={"order_id": order_id}).status_code == 200
    token = api_client.post(f"/api/orders/{order_id}/collection-token").json()["token"]

    clock.advance(seconds=150)
    acting_user["sub"] = VENDOR_ID
    response = api_client.post("/api/orders/collect", json={"token": token})
    assert response.status_code == 400
    assert response.json()["code"] == "token_expired"


def test_decline_and_cancel(api_client, acting_user):
    declined_id = _create(api_client)["id"]
    cancelled_id = _create(api_client)["id"]

    assert api_client.post(f"/api/orders/{cancelled_id}/cancel", json={"reason": "Plans changed"}).status_code == 200

    acting_user["sub"] = VENDOR_ID
    response = api_client.post(f"/api/orders/{declined_id}/decline", json={"reason": "Out of stock"})
    assert response.status_code == 200
    assert response.json()["cancellation_reason"] == "Out of stock"

    closed = api_client.post(f"/api/orders/{declined_id}/approve", json={})
    assert closed.status_code == 409

    vendor_orders = api_client.get("/api/orders/vendor").json()
    assert {o["status"] for o in vendor_orders} == {"cancelled"}


def test_manual_expiry_sweep(api_client, clock):
    order_id = _create(api_client)["id"]
    clock.advance(days=31)

    response = api_client.post("/api/internal/orders/expire")
    assert response.status_code == 200
    assert response.json() == {"expired": [order_id], "count": 1}
    assert api_client.get(f"/api/orders/{order_id}").json()["status"] == "expired"


def test_internal_key_enforced_when_configured(api_client, monkeypatch):
    monkeypatch.setenv("INTERNAL_API_KEY", "s3cret")
    assert api_client.post("/api/internal/orders/expire").status_code == 401
    ok = api_client.post("/api/internal/orders/expire", headers={"X-Internal-API-Key": "s3cret"})
    assert ok.status_code == 200


def test_health(api_client):
    assert api_client.get("/api/health").json() == {"status": "ok"}
