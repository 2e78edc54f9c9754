from .client import (
    PROCESS_URL_LIVE,
    PROCESS_URL_SANDBOX,
    PayFastClient,
    PayFastConfig,
    PaymentRequest,
    checkout_signature,
    notification_signature,
)

__all__ = [
    "PROCESS_URL_LIVE",
    "PROCESS_URL_SANDBOX",
    "PayFastClient",
    "PayFastConfig",
    "PaymentRequest",
    "checkout_signature",
    "notification_signature",
]
