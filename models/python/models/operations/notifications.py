import logging
from typing import Literal, Protocol

from models.entities.documents.orders import Order

logger = logging.getLogger(__name__)

OrderEvent = Literal[
    "approved",
    "declined",
    "cancelled",
    "payment_received",
    "completed",
    "expired",
]


class OrderNotifier(Protocol):
    """Receives order transitions for user-facing notifications (push, email).

    Delivery is fire-and-forget: callers log and drop any exception raised here.
    """

    async def order_transitioned(self, order: Order, event: OrderEvent) -> None:
        ...


class LogNotifier:
    async def order_transitioned(self, order: Order, event: OrderEvent) -> None:
        logger.info(
            f"Notify order {order.id} {event}: requester={order.data.user_id} "
            f"vendor={order.data.vendor_id}"
        )
