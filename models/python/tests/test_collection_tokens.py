import base64
import json
from datetime import datetime, timezone

import pytest

from models.operations.collection_tokens import decode_token, issue_token
from models.operations.errors import ErrorKind, InvalidRequestError

ISSUED = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def test_issued_token_decodes_to_its_parties():
    token = issue_token("order-1", "user-1", "vendor-1", ISSUED)
    payload = decode_token(token)

    assert payload.order_id == "order-1"
    assert payload.requester_id == "user-1"
    assert payload.vendor_id == "vendor-1"
    assert payload.issued_at == int(ISSUED.timestamp() * 1000)
    assert "=" not in token


def test_tokens_for_same_order_differ():
    assert issue_token("order-1", "u", "v", ISSUED) != issue_token("order-1", "u", "v", ISSUED)


def test_token_payload_uses_camel_case_keys():
    token = issue_token("order-1", "user-1", "vendor-1", ISSUED)
    raw = json.loads(base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)))
    assert set(raw) == {"orderId", "requesterId", "vendorId", "issuedAt", "nonce"}


@pytest.mark.parametrize(
    "token",
    [
        "",
        "   ",
        "not base64 at all!",
        base64.urlsafe_b64encode(b"[1, 2, 3]").decode(),
        base64.urlsafe_b64encode(b'{"orderId": "o"}').decode(),
    ],
)
def test_malformed_tokens_are_rejected(token):
    with pytest.raises(InvalidRequestError) as exc:
        decode_token(token)
    assert exc.value.kind == ErrorKind.VALIDATION
    assert exc.value.code == "invalid_token"
