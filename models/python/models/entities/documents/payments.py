from typing import Literal, Optional
from datetime import datetime
from clients.store import BaseDocumentModel, BaseEntityData

# Gateway vocabulary, distinct from order statuses. PAID marks a completed
# payment whose merchant share has been paid out.
PaymentRecordStatus = Literal["PENDING", "COMPLETED", "FAILED", "CANCELLED", "PAID"]
PaymentRecordMethod = Literal["PAYFAST", "CASH"]

SETTLED_PAYMENT_STATUSES = ("COMPLETED", "PAID")


class PaymentRecordData(BaseEntityData):
    order_id: Optional[str] = None
    amount: float
    commission_amount: float
    merchant_amount: float
    status: PaymentRecordStatus = "PENDING"
    payment_method: PaymentRecordMethod = "PAYFAST"
    transaction_id: Optional[str] = None
    payer_id: str
    merchant_id: str
    merchant_paid: bool = False
    merchant_payout_date: Optional[datetime] = None

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_PAYMENT_STATUSES


class PaymentRecord(BaseDocumentModel[PaymentRecordData]):
    _collection_name = "payments"


def payment_key_for_order(order_id: str) -> str:
    """Deterministic key so every settlement path for an order hits one record."""
    return f"order::{order_id}"
