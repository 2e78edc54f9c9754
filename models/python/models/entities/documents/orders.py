from typing import List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field
from clients.store import BaseDocumentModel, BaseEntityData

OrderStatus = Literal[
    "awaiting_approval",
    "awaiting_payment",
    "cash_payment",
    "payment_received",
    "completed",
    "cancelled",
    "expired",
]
PaymentMethod = Literal["card", "cash", "bank_transfer"]
OrderPaymentStatus = Literal["pending", "completed", "failed", "cancelled"]

TERMINAL_STATUSES = ("completed", "cancelled", "expired")

STATUS_DISPLAY = {
    "awaiting_approval": "Awaiting Approval",
    "awaiting_payment": "Awaiting Payment",
    "cash_payment": "Cash Payment",
    "payment_received": "Payment Received",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "expired": "Expired",
}


class OrderItem(BaseModel):
    id: str
    item_id: str
    item_name: str
    item_image: Optional[str] = None
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    total_price: float = 0.0  # recomputed from quantity * unit_price
    vendor_id: str
    vendor_name: str


class OrderData(BaseEntityData):
    # Requester
    user_id: str
    user_name: str
    user_email: str
    user_phone: Optional[str] = None

    # Vendor (all items share it)
    vendor_id: str
    vendor_name: str
    vendor_email: Optional[str] = None

    items: List[OrderItem] = []
    subtotal: float = 0.0
    platform_fee: float = 0.0
    total_amount: float = 0.0

    status: OrderStatus = "awaiting_approval"
    payment_method: PaymentMethod

    approved_at: Optional[datetime] = None
    payment_due_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    payment_id: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_amount: Optional[float] = None
    payment_status: Optional[OrderPaymentStatus] = None

    # QR collection handoff, cleared once consumed
    collection_token: Optional[str] = None
    collection_token_expires_at: Optional[datetime] = None

    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    vendor_approval_notes: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Order(BaseDocumentModel[OrderData]):
    _collection_name = "orders"
