"""QR collection tokens.

A token is the base64url encoding (unpadded) of compact JSON::

    {"orderId": ..., "requesterId": ..., "vendorId": ..., "issuedAt": <epoch ms>, "nonce": ...}

It is opaque to the vendor's scanner. The order document keeps the exact
string and its expiry; validation compares against that stored copy, so a
token is only ever as valid as the order says it is.
"""

import base64
import binascii
import json
import secrets
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import InvalidRequestError


class CollectionTokenPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    order_id: str = Field(alias="orderId", min_length=1)
    requester_id: str = Field(alias="requesterId", min_length=1)
    vendor_id: str = Field(alias="vendorId", min_length=1)
    issued_at: int = Field(alias="issuedAt")
    nonce: str


def encode_token(payload: CollectionTokenPayload) -> str:
    raw = json.dumps(payload.model_dump(by_alias=True), separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def issue_token(order_id: str, requester_id: str, vendor_id: str, issued_at: datetime) -> str:
    payload = CollectionTokenPayload(
        order_id=order_id,
        requester_id=requester_id,
        vendor_id=vendor_id,
        issued_at=int(issued_at.timestamp() * 1000),
        nonce=secrets.token_urlsafe(8),
    )
    return encode_token(payload)


def decode_token(token: str) -> CollectionTokenPayload:
    if not isinstance(token, str) or not token.strip():
        raise InvalidRequestError("Collection token is empty", code="invalid_token")
    token = token.strip()
    try:
        padded = token + "=" * (-len(token) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        return CollectionTokenPayload.model_validate(json.loads(raw))
    except (binascii.Error, UnicodeError, ValueError, ValidationError):
        raise InvalidRequestError("Collection token is malformed", code="invalid_token")
