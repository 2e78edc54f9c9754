"""
Order lifecycle with CAS-guarded transitions.

Every mutating operation is a single read-modify-write through
``cas_retry``: authorization and state guards run inside the mutator against
the document that is about to be replaced, so two concurrent callers can
never both pass a guard for the same transition.

    awaiting_approval -> awaiting_payment | cash_payment | cancelled | expired
    awaiting_payment  -> payment_received | cancelled | expired
    cash_payment      -> payment_received | cancelled
    payment_received  -> completed (collection token)
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel

from clients.store import DocumentStore, Filter, Repository, Sort, utc_now
from models.entities.documents.order_status_updates import (
    OrderStatusUpdate,
    OrderStatusUpdateData,
)
from models.entities.documents.orders import (
    Order,
    OrderData,
    OrderItem,
    OrderStatus,
    PaymentMethod,
)

from .cas import cas_retry
from .collection_tokens import decode_token, issue_token
from .commission import order_totals
from .errors import (
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
    OperationError,
    UnauthorizedError,
    invalid_state,
)
from .notifications import LogNotifier, OrderEvent, OrderNotifier

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
EXPIRED_REASON = "Order expired automatically"


class OrderSettings(BaseModel):
    commission_rate: float = 0.08
    approval_window: timedelta = timedelta(days=30)
    payment_window: timedelta = timedelta(days=7)
    collection_token_ttl: timedelta = timedelta(seconds=120)


class Requester(BaseModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class CollectionToken:
    token: str
    expires_at: datetime


class OrderService:
    def __init__(
        self,
        store: DocumentStore,
        settings: Optional[OrderSettings] = None,
        notifier: Optional[OrderNotifier] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or OrderSettings()
        self.notifier = notifier or LogNotifier()
        self._clock = clock
        self.orders: Repository[Order] = Repository(store, Order, clock=clock)
        self.status_updates: Repository[OrderStatusUpdate] = Repository(
            store, OrderStatusUpdate, clock=clock
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _mutate(
        self, order_id: str, mutator: Callable[[OrderData], Optional[OperationError]]
    ) -> Order:
        return await cas_retry(
            self.orders,
            order_id,
            mutator,
            on_missing=lambda: NotFoundError(f"Order {order_id} not found", code="order_not_found"),
        )

    async def _record_status(
        self, order_id: str, status: OrderStatus, notes: str, updated_by: str
    ) -> None:
        """Append to the audit trail. Best-effort: the transition already happened."""
        try:
            await self.status_updates.create(
                OrderStatusUpdateData(
                    order_id=order_id,
                    status=status,
                    notes=notes,
                    updated_by=updated_by,
                    timestamp=self._clock(),
                ),
                user_id=None if updated_by == SYSTEM_ACTOR else updated_by,
            )
        except Exception as e:
            logger.error(f"Failed to record status update '{status}' for order {order_id}: {e}")

    async def _notify(self, order: Order, event: OrderEvent) -> None:
        try:
            await self.notifier.order_transitioned(order, event)
        except Exception as e:
            logger.warning(f"Notification '{event}' for order {order.id} failed: {e}")

    # ------------------------------------------------------------------
    # Creation & queries
    # ------------------------------------------------------------------

    async def create(
        self,
        requester: Requester,
        items: Sequence[OrderItem],
        payment_method: PaymentMethod,
        notes: Optional[str] = None,
        vendor_email: Optional[str] = None,
    ) -> Order:
        if not items:
            raise InvalidRequestError("An order needs at least one item", code="empty_order")
        if len({item.vendor_id for item in items}) > 1:
            raise InvalidRequestError(
                "All items in an order must come from the same vendor", code="mixed_vendors"
            )

        totals = order_totals(items, self.settings.commission_rate)
        vendor = totals.items[0]
        now = self._clock()
        data = OrderData(
            user_id=requester.id,
            user_name=requester.name,
            user_email=requester.email,
            user_phone=requester.phone,
            vendor_id=vendor.vendor_id,
            vendor_name=vendor.vendor_name,
            vendor_email=vendor_email,
            items=totals.items,
            subtotal=totals.subtotal,
            platform_fee=totals.platform_fee,
            total_amount=totals.total_amount,
            status="awaiting_approval",
            payment_method=payment_method,
            expires_at=now + self.settings.approval_window,
            notes=notes,
        )
        order = await self.orders.create(data, user_id=requester.id)
        await self._record_status(order.id, "awaiting_approval", "Order created", requester.id)
        logger.info(
            f"Order {order.id} created by {requester.id} for vendor {vendor.vendor_id}: "
            f"total={order.data.total_amount:.2f} method={payment_method}"
        )
        return order

    async def get(self, order_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", code="order_not_found")
        return order

    async def get_for_party(self, order_id: str, user_id: str) -> Order:
        """Fetch an order on behalf of its requester or vendor."""
        order = await self.get(order_id)
        if user_id not in (order.data.user_id, order.data.vendor_id):
            raise UnauthorizedError("Access to this order is denied")
        return order

    async def get_user_orders(self, user_id: str) -> List[Order]:
        return await self.orders.find(
            Filter.eq("user_id", user_id), sort=Sort("created_at", descending=True)
        )

    async def get_vendor_orders(self, vendor_id: str) -> List[Order]:
        return await self.orders.find(
            Filter.eq("vendor_id", vendor_id), sort=Sort("created_at", descending=True)
        )

    async def get_pending_approval_orders(self, vendor_id: str) -> List[Order]:
        return await self.orders.find(
            Filter.eq("vendor_id", vendor_id),
            Filter.eq("status", "awaiting_approval"),
            sort=Sort("created_at"),
        )

    async def get_status_history(self, order_id: str) -> List[OrderStatusUpdate]:
        return await self.status_updates.find(
            Filter.eq("order_id", order_id), sort=Sort("timestamp")
        )

    # ------------------------------------------------------------------
    # Vendor decisions
    # ------------------------------------------------------------------

    async def approve(self, order_id: str, vendor_id: str, notes: Optional[str] = None) -> Order:
        def _mutate(data: OrderData) -> Optional[OperationError]:
            if data.vendor_id != vendor_id:
                return UnauthorizedError("Only the vendor can approve this order")
            if data.status != "awaiting_approval":
                return invalid_state("approved", data.status, code="not_awaiting_approval")
            now = self._clock()
            data.approved_at = now
            data.vendor_approval_notes = notes
            if data.payment_method == "cash":
                data.status = "cash_payment"
            else:
                data.status = "awaiting_payment"
                data.payment_due_at = now + self.settings.payment_window
            return None

        order = await self._mutate(order_id, _mutate)
        await self._record_status(order.id, order.data.status, notes or "Order approved", vendor_id)
        await self._notify(order, "approved")
        logger.info(f"Order {order.id} approved by vendor {vendor_id} -> {order.data.status}")
        return order

    async def decline(self, order_id: str, vendor_id: str, reason: str) -> Order:
        def _mutate(data: OrderData) -> Optional[OperationError]:
            if data.vendor_id != vendor_id:
                return UnauthorizedError("Only the vendor can decline this order")
            if data.status != "awaiting_approval":
                return invalid_state("declined", data.status, code="not_awaiting_approval")
            data.status = "cancelled"
            data.cancellation_reason = reason
            return None

        order = await self._mutate(order_id, _mutate)
        await self._record_status(order.id, "cancelled", f"Order declined: {reason}", vendor_id)
        await self._notify(order, "declined")
        logger.info(f"Order {order.id} declined by vendor {vendor_id}")
        return order

    async def cancel(self, order_id: str, actor_id: str, reason: str) -> Order:
        """Cancel an unpaid order.

        Either party may cancel once the order is approved but unpaid. While
        it awaits approval only the requester may withdraw it; the vendor
        declines instead.
        """

        def _mutate(data: OrderData) -> Optional[OperationError]:
            is_requester = data.user_id == actor_id
            if not is_requester and data.vendor_id != actor_id:
                return UnauthorizedError("Only the requester or vendor can cancel this order")
            if data.status == "awaiting_approval" and not is_requester:
                return InvalidTransitionError(
                    "Orders awaiting approval are declined by the vendor, not cancelled",
                    code="use_decline",
                )
            if data.status not in ("awaiting_approval", "awaiting_payment", "cash_payment"):
                return invalid_state("cancelled", data.status)
            data.status = "cancelled"
            data.cancellation_reason = reason
            return None

        order = await self._mutate(order_id, _mutate)
        await self._record_status(order.id, "cancelled", f"Order cancelled: {reason}", actor_id)
        await self._notify(order, "cancelled")
        logger.info(f"Order {order.id} cancelled by {actor_id}")
        return order

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    async def mark_payment_received(
        self,
        order_id: str,
        payment_id: str,
        reference: str,
        amount: float,
        actor_id: str,
    ) -> Order:
        def _mutate(data: OrderData) -> Optional[OperationError]:
            if data.status not in ("awaiting_payment", "cash_payment"):
                return invalid_state("marked as paid", data.status, code="not_awaiting_payment")
            data.status = "payment_received"
            data.payment_id = payment_id
            data.payment_reference = reference
            data.payment_amount = amount
            data.payment_status = "completed"
            return None

        order = await self._mutate(order_id, _mutate)
        await self._record_status(order.id, "payment_received", "Payment received", actor_id)
        await self._notify(order, "payment_received")
        logger.info(f"Order {order.id} payment received: {amount:.2f} ({reference})")
        return order

    # ------------------------------------------------------------------
    # Collection handoff
    # ------------------------------------------------------------------

    async def generate_collection_token(self, order_id: str, requester_id: str) -> CollectionToken:
        """Issue a fresh token; any earlier unconsumed token stops being valid."""

        def _mutate(data: OrderData) -> Optional[OperationError]:
            if data.user_id != requester_id:
                return UnauthorizedError("Only the requester can generate a collection code")
            if data.status != "payment_received":
                return invalid_state(
                    "collected", data.status, code="payment_not_received"
                )
            now = self._clock()
            data.collection_token = issue_token(order_id, requester_id, data.vendor_id, now)
            data.collection_token_expires_at = now + self.settings.collection_token_ttl
            return None

        order = await self._mutate(order_id, _mutate)
        logger.info(
            f"Collection token issued for order {order.id}, "
            f"expires {order.data.collection_token_expires_at.isoformat()}"
        )
        return CollectionToken(
            token=order.data.collection_token,
            expires_at=order.data.collection_token_expires_at,
        )

    async def complete_with_token(self, token: str, vendor_id: str) -> Order:
        payload = decode_token(token)

        def _mutate(data: OrderData) -> Optional[OperationError]:
            if data.vendor_id != vendor_id or payload.vendor_id != vendor_id:
                return UnauthorizedError("Not authorized to complete this order")
            if data.status == "completed":
                return InvalidTransitionError(
                    "Collection code has already been used", code="token_already_used"
                )
            if data.is_terminal:
                return invalid_state("completed", data.status, code="order_closed")
            if data.status != "payment_received":
                return invalid_state("completed", data.status, code="payment_not_received")
            if not data.collection_token:
                return NotFoundError("No active collection code for this order", code="token_not_found")
            if data.collection_token_expires_at is None or self._clock() > data.collection_token_expires_at:
                return InvalidRequestError("Collection code has expired", code="token_expired")
            if not secrets.compare_digest(data.collection_token, token.strip()):
                return InvalidRequestError(
                    "Collection code does not match the latest one issued", code="token_mismatch"
                )
            data.status = "completed"
            data.completed_at = self._clock()
            data.collection_token = None
            data.collection_token_expires_at = None
            return None

        order = await self._mutate(payload.order_id, _mutate)
        await self._record_status(order.id, "completed", "Order completed with collection code", vendor_id)
        await self._notify(order, "completed")
        logger.info(f"Order {order.id} completed by vendor {vendor_id}")
        return order

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def expire_stale_orders(self) -> List[str]:
        """Expire orders past their approval or payment deadline.

        Idempotent: each candidate is re-checked inside its own CAS update,
        so a concurrent approval or payment wins over expiry.
        """
        now = self._clock()
        candidates = await self.orders.find(
            Filter.eq("status", "awaiting_approval"), Filter("expires_at", "<", now)
        )
        candidates += await self.orders.find(
            Filter.eq("status", "awaiting_payment"), Filter("payment_due_at", "<", now)
        )

        def _mutate(data: OrderData) -> Optional[OperationError]:
            if data.status == "awaiting_approval":
                deadline = data.expires_at
            elif data.status == "awaiting_payment":
                deadline = data.payment_due_at
            else:
                return invalid_state("expired", data.status)
            if deadline is None or now <= deadline:
                return InvalidTransitionError("Order is not past its deadline", code="not_stale")
            data.status = "expired"
            data.cancellation_reason = EXPIRED_REASON
            return None

        expired: List[str] = []
        for candidate in candidates:
            try:
                order = await self._mutate(candidate.id, _mutate)
            except (InvalidTransitionError, NotFoundError) as e:
                logger.info(f"Skipping expiry of order {candidate.id}: {e}")
                continue
            except OperationError as e:
                logger.warning(f"Failed to expire order {candidate.id}: {e}")
                continue
            await self._record_status(order.id, "expired", EXPIRED_REASON, SYSTEM_ACTOR)
            await self._notify(order, "expired")
            expired.append(order.id)

        if expired:
            logger.info(f"Expired {len(expired)} stale orders")
        return expired
