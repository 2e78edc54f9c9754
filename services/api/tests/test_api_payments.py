import pytest

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


@pytest.fixture
def approved_order_id(api_client, acting_user):
    order_id = api_client.post("/api/orders/", json=ORDER_BODY).json()["id"]
    acting_user["sub"] = VENDOR_ID
    api_client.post(f"/api/orders/{order_id}/approve", json={})
    acting_user["sub"] = REQUESTER_ID
    return order_id


def _itn(order_id, status="COMPLETE"):
    return {
        "m_payment_id": f"m-{order_id}",
        "pf_payment_id": "1089250",
        "payment_status": status,
        "amount_gross": "216.00",
        "custom_str1": order_id,
    }


def test_checkout_returns_signed_sandbox_form(api_client, approved_order_id):
    response = api_client.post("/api/payments/checkout", json={"order_id": approved_order_id})
    assert response.status_code == 200
    body = response.json()
    assert body["process_url"] == "https://sandbox.payfast.co.za/eng/process"
    assert body["form"]["amount"] == "216.00"
    assert body["form"]["merchant_id"] == "10000100"
    assert body["form"]["custom_str1"] == approved_order_id


def test_checkout_by_vendor_is_forbidden(api_client, acting_user, approved_order_id):
    acting_user["sub"] = VENDOR_ID
    response = api_client.post("/api/payments/checkout", json={"order_id": approved_order_id})
    assert response.status_code == 403


def test_duplicate_webhook_is_acknowledged_once(api_client, approved_order_id, store):
    first = api_client.post("/api/webhooks/payfast", data=_itn(approved_order_id))
    second = api_client.post("/api/webhooks/payfast", data=_itn(approved_order_id))

    assert first.status_code == 200
    assert first.json() == {"success": True}
    assert second.status_code == 200
    assert store.count("payments") == 1
    assert api_client.get(f"/api/orders/{approved_order_id}").json()["status"] == "payment_received"


def test_webhook_error_statuses(api_client):
    missing = api_client.post("/api/webhooks/payfast", data={"payment_status": "COMPLETE"})
    assert missing.status_code == 400
    assert missing.json()["code"] == "missing_order_id"

    unknown = api_client.post("/api/webhooks/payfast", data=_itn("nope"))
    assert unknown.status_code == 404


def test_wallet_summary_and_payout(api_client, acting_user, approved_order_id):
    api_client.post("/api/webhooks/payfast", data=_itn(approved_order_id))

    acting_user["sub"] = VENDOR_ID
    summary = api_client.get("/api/wallet/").json()
    assert summary["available_balance"] == 198.72
    assert summary["totals"]["total_commission"] == 17.28

    payout = api_client.post("/api/wallet/payout", json={})
    assert payout.status_code == 200
    assert payout.json()["total_amount"] == 198.72

    summary = api_client.get("/api/wallet/").json()
    assert summary["available_balance"] == 0.0
    assert summary["paid_out_total"] == 198.72

    empty = api_client.post("/api/wallet/payout", json={})
    assert empty.status_code == 400
    assert empty.json()["code"] == "nothing_to_pay_out"


def test_wallet_transactions_after_payout(api_client, acting_user, approved_order_id):
    api_client.post("/api/webhooks/payfast", data=_itn(approved_order_id))
    acting_user["sub"] = VENDOR_ID
    assert api_client.get("/api/wallet/transactions").json() == []

    api_client.post("/api/wallet/payout", json={})

    transactions = api_client.get("/api/wallet/transactions", params={"limit": 500}).json()
    assert len(transactions) == 1
    assert transactions[0]["id"] == f"payout::order::{approved_order_id}"
    assert transactions[0]["data"]["type"] == "DEBIT_PAYOUT"
    assert transactions[0]["data"]["amount"] == 198.72
