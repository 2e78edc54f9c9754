"""PayFast client: checkout form signing and ITN (Instant Transaction
Notification) verification.

PayFast signs with MD5 over a ``key=value&...`` parameter string, values
URL-encoded with ``+`` for spaces, optionally followed by
``&passphrase=<passphrase>``. Checkout forms sort their keys and skip blank
values; notifications keep the order in which PayFast sent the fields.
"""

import hashlib
import hmac
import logging
from typing import Dict, Mapping, Optional
from urllib.parse import quote_plus

from pydantic import BaseModel

from clients import http

logger = logging.getLogger(__name__)

PROCESS_URL_LIVE = "https://www.payfast.co.za/eng/process"
PROCESS_URL_SANDBOX = "https://sandbox.payfast.co.za/eng/process"
VALIDATE_URL_LIVE = "https://www.payfast.co.za/eng/query/validate"
VALIDATE_URL_SANDBOX = "https://sandbox.payfast.co.za/eng/query/validate"


class PayFastConfig(BaseModel):
    merchant_id: str
    merchant_key: str
    passphrase: str = ""
    sandbox: bool = True
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    notify_url: Optional[str] = None
    verify_signatures: bool = False
    validate_with_server: bool = False

    @property
    def process_url(self) -> str:
        return PROCESS_URL_SANDBOX if self.sandbox else PROCESS_URL_LIVE

    @property
    def validate_url(self) -> str:
        return VALIDATE_URL_SANDBOX if self.sandbox else VALIDATE_URL_LIVE


class PaymentRequest(BaseModel):
    amount: float
    item_name: str
    email: str
    item_description: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    custom_str1: Optional[str] = None
    custom_str2: Optional[str] = None
    custom_str3: Optional[str] = None
    custom_str4: Optional[str] = None
    custom_str5: Optional[str] = None


def _param_string(pairs, passphrase: str) -> str:
    output = "&".join(f"{key}={quote_plus(value)}" for key, value in pairs)
    if passphrase:
        output += f"&passphrase={quote_plus(passphrase.strip())}"
    return output


def checkout_signature(data: Mapping[str, str], passphrase: str = "") -> str:
    """Signature for an outgoing payment form (sorted keys, blanks skipped)."""
    pairs = [
        (key, str(data[key]).strip())
        for key in sorted(data)
        if key != "signature" and data[key] not in (None, "")
    ]
    return hashlib.md5(_param_string(pairs, passphrase).encode("utf-8")).hexdigest()


def notification_signature(fields: Mapping[str, str], passphrase: str = "") -> str:
    """Signature for an inbound notification (fields in received order)."""
    pairs = [
        (key, (value or "").strip())
        for key, value in fields.items()
        if key != "signature"
    ]
    return hashlib.md5(_param_string(pairs, passphrase).encode("utf-8")).hexdigest()


class PayFastClient:
    def __init__(self, config: PayFastConfig) -> None:
        self.config = config

    @property
    def verify_signatures(self) -> bool:
        return self.config.verify_signatures

    def build_payment_form(self, payment: PaymentRequest) -> Dict[str, str]:
        """Build the signed form fields the browser posts to PayFast."""
        data: Dict[str, str] = {
            "merchant_id": self.config.merchant_id,
            "merchant_key": self.config.merchant_key,
        }
        for key, value in (
            ("return_url", self.config.return_url),
            ("cancel_url", self.config.cancel_url),
            ("notify_url", self.config.notify_url),
            ("name_first", payment.first_name),
            ("name_last", payment.last_name),
        ):
            if value:
                data[key] = value
        data["email_address"] = payment.email
        data["amount"] = f"{payment.amount:.2f}"
        data["item_name"] = payment.item_name
        if payment.item_description:
            data["item_description"] = payment.item_description
        for i in range(1, 6):
            value = getattr(payment, f"custom_str{i}")
            if value:
                data[f"custom_str{i}"] = value

        data["signature"] = checkout_signature(data, self.config.passphrase)
        if self.config.sandbox:
            data["testing"] = "true"
        return data

    def verify_notification(self, fields: Mapping[str, str]) -> bool:
        if self.verify_signatures and not self.config.passphrase.strip():
            # Without the shared passphrase anyone can compute a matching signature
            logger.error("PayFast signature verification is on but no passphrase is configured")
            return False
        provided = fields.get("signature")
        if not provided:
            return False
        expected = notification_signature(fields, self.config.passphrase)
        return hmac.compare_digest(expected, provided.strip().lower())

    async def validate_with_server(self, fields: Mapping[str, str]) -> bool:
        """Confirm a notification with PayFast's validate endpoint."""
        try:
            body = await http.request(
                "POST",
                self.config.validate_url,
                form_data=fields,
                parse_json=False,
            )
        except Exception as e:
            logger.error(f"PayFast server validation request failed: {e}")
            return False
        valid = body.strip() == "VALID"
        if not valid:
            logger.warning(f"PayFast server validation rejected notification: {body.strip()!r}")
        return valid
