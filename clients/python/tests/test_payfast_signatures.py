import hashlib

from clients.payfast import (
    PROCESS_URL_LIVE,
    PayFastClient,
    PayFastConfig,
    PaymentRequest,
    checkout_signature,
    notification_signature,
)


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def test_notification_signature_keeps_received_order_and_encodes_values():
    fields = {
        "pf_payment_id": "1089250",
        "payment_status": "COMPLETE",
        "item_name": "Tent & chairs",
        "amount_gross": "216.00",
        "custom_str1": "order-1",
        "signature": "ignored",
    }
    expected = _md5(
        "pf_payment_id=1089250&payment_status=COMPLETE&item_name=Tent+%26+chairs"
        "&amount_gross=216.00&custom_str1=order-1&passphrase=secret+phrase"
    )
    assert notification_signature(fields, "secret phrase") == expected


def test_notification_signature_without_passphrase():
    fields = {"b": "2", "a": "1"}
    assert notification_signature(fields) == _md5("b=2&a=1")


def test_checkout_signature_sorts_keys_and_skips_blanks():
    data = {"merchant_id": "10000100", "amount": "216.00", "item_name": "", "email_address": "t@example.com"}
    expected = _md5("amount=216.00&email_address=t%40example.com&merchant_id=10000100")
    assert checkout_signature(data) == expected


def test_verify_notification_round_trip():
    client = PayFastClient(
        PayFastConfig(merchant_id="10000100", merchant_key="46f0cd694581a", passphrase="pp")
    )
    fields = {"payment_status": "COMPLETE", "custom_str1": "order-1"}
    fields["signature"] = notification_signature(fields, "pp")

    assert client.verify_notification(fields)
    assert not client.verify_notification({**fields, "custom_str1": "order-2"})
    assert not client.verify_notification({"payment_status": "COMPLETE"})


def test_verification_without_passphrase_rejects_everything():
    client = PayFastClient(
        PayFastConfig(merchant_id="10000100", merchant_key="46f0cd694581a", verify_signatures=True)
    )
    fields = {"payment_status": "COMPLETE", "custom_str1": "order-1", "amount_gross": "0.01"}
    fields["signature"] = notification_signature(fields, "")

    assert not client.verify_notification(fields)


def test_payment_form_is_signed_and_marked_for_sandbox():
    client = PayFastClient(
        PayFastConfig(
            merchant_id="10000100",
            merchant_key="46f0cd694581a",
            notify_url="https://api.example.com/api/webhooks/payfast",
        )
    )
    form = client.build_payment_form(
        PaymentRequest(amount=216, item_name="Boleka order 1", email="t@example.com", custom_str1="order-1")
    )

    assert form["amount"] == "216.00"
    assert form["testing"] == "true"
    unsigned = {k: v for k, v in form.items() if k not in ("signature", "testing")}
    assert form["signature"] == checkout_signature(unsigned)


def test_live_config_uses_live_urls():
    config = PayFastConfig(merchant_id="m", merchant_key="k", sandbox=False)
    assert config.process_url == PROCESS_URL_LIVE
    form = PayFastClient(config).build_payment_form(
        PaymentRequest(amount=1.5, item_name="x", email="e@example.com")
    )
    assert "testing" not in form
