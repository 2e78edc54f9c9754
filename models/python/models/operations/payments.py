"""
PayFast payment reconciliation.

Payment records are keyed deterministically by order (``order::<order_id>``)
so checkout, ITN redelivery and cash confirmation all converge on a single
record per order. A record that has reached COMPLETED or PAID is never
downgraded and keeps its payout flags.
"""

import asyncio
import logging
from typing import Callable, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from clients.payfast import PayFastClient, PaymentRequest
from clients.store import (
    CasMismatchError,
    DocumentExistsError,
    DocumentStore,
    Repository,
    utc_now,
)
from models.entities.documents.orders import Order
from models.entities.documents.payments import (
    PaymentRecord,
    PaymentRecordData,
    payment_key_for_order,
)

from . import commission
from .errors import (
    InvalidRequestError,
    InvalidTransitionError,
    UnauthorizedError,
    UpstreamFailureError,
    invalid_state,
)
from .orders import OrderService

logger = logging.getLogger(__name__)

MAX_UPSERT_ATTEMPTS = 6

PaymentMutator = Callable[[Optional[PaymentRecordData]], Optional[PaymentRecordData]]


class PayFastNotification(BaseModel):
    """The ITN fields this service reads. Anything else PayFast sends is kept."""

    model_config = ConfigDict(extra="allow")

    m_payment_id: Optional[str] = None
    pf_payment_id: Optional[str] = None
    payment_status: str = ""
    item_name: Optional[str] = None
    amount_gross: Optional[float] = None
    amount_fee: Optional[float] = None
    amount_net: Optional[float] = None
    custom_str1: Optional[str] = None  # order id
    custom_str2: Optional[str] = None  # payer id
    custom_str3: Optional[str] = None  # vendor id
    email_address: Optional[str] = None
    merchant_id: Optional[str] = None
    signature: Optional[str] = None

    @field_validator("amount_gross", "amount_fee", "amount_net", mode="before")
    @classmethod
    def blank_amount_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def order_id(self) -> Optional[str]:
        if self.custom_str1 and self.custom_str1.strip():
            return self.custom_str1.strip()
        return None

    @property
    def transaction_id(self) -> str:
        return self.pf_payment_id or self.m_payment_id or "unknown"


class Checkout(BaseModel):
    payment_id: str
    process_url: str
    form: Dict[str, str]


class PaymentReconciler:
    def __init__(
        self,
        store: DocumentStore,
        orders: OrderService,
        payfast: PayFastClient,
        commission_rate: float = 0.08,
        clock: Callable = utc_now,
    ) -> None:
        self.orders = orders
        self.payfast = payfast
        self.commission_rate = commission_rate
        self.payments: Repository[PaymentRecord] = Repository(store, PaymentRecord, clock=clock)

    async def _upsert_payment(self, order_id: str, apply: PaymentMutator) -> Optional[PaymentRecord]:
        """Create or update the order's payment record under CAS.

        *apply* gets the current data (``None`` when there is no record yet)
        and returns the data to write, or ``None`` to leave things as they are.
        """
        key = payment_key_for_order(order_id)
        backoff_ms = 10
        for attempt in range(MAX_UPSERT_ATTEMPTS):
            existing = await self.payments.get(key)
            if existing is None:
                data = apply(None)
                if data is None:
                    return None
                try:
                    return await self.payments.create(data, key=key, user_id=data.payer_id)
                except DocumentExistsError:
                    logger.debug(f"Payment {key} created concurrently, re-reading")
                    continue

            if apply(existing.data) is None:
                return existing
            try:
                return await self.payments.update(existing)
            except CasMismatchError:
                logger.debug(f"CAS conflict on payment {key}, retry {attempt + 1}")
                await asyncio.sleep(backoff_ms / 1000)
                backoff_ms *= 2

        logger.warning(f"Gave up writing payment {key} after {MAX_UPSERT_ATTEMPTS} attempts")
        raise UpstreamFailureError("Concurrent update conflict, please retry", code="concurrent_update")

    # ------------------------------------------------------------------
    # ITN
    # ------------------------------------------------------------------

    async def handle_notification(self, fields: Mapping[str, str]) -> str:
        """Apply a PayFast ITN. Returns a short outcome label for logging."""
        if self.payfast.verify_signatures:
            if not self.payfast.verify_notification(fields):
                logger.warning(f"Rejected PayFast notification with bad signature: {fields.get('pf_payment_id')}")
                raise InvalidRequestError("Invalid PayFast signature", code="invalid_signature")
        else:
            logger.debug("PayFast signature verification disabled outside production")

        if self.payfast.config.validate_with_server and not await self.payfast.validate_with_server(fields):
            raise InvalidRequestError("PayFast did not confirm the notification", code="unconfirmed_notification")

        try:
            notification = PayFastNotification.model_validate(dict(fields))
        except ValidationError as e:
            logger.warning(f"Malformed PayFast notification: {e}")
            raise InvalidRequestError("Malformed PayFast notification", code="malformed_notification")

        order_id = notification.order_id
        if order_id is None:
            logger.error("No order id in PayFast notification")
            raise InvalidRequestError("No order id in PayFast notification", code="missing_order_id")

        order = await self.orders.get(order_id)
        status = notification.payment_status.strip().upper()
        logger.info(f"PayFast notification for order {order_id}: {status} ({notification.transaction_id})")

        if status == "COMPLETE":
            return await self._settle(order, notification)
        if status in ("FAILED", "CANCELLED"):
            await self._mark_unsettled(order, status)
            return status.lower()

        logger.warning(f"Unknown PayFast payment status {status!r} for order {order_id}")
        return "ignored"

    async def _settle(self, order: Order, notification: PayFastNotification) -> str:
        gross = notification.amount_gross
        if gross is None:
            logger.warning(f"PayFast notification for order {order.id} has no amount_gross, using order total")
            gross = order.data.total_amount
        elif abs(gross - order.data.total_amount) >= 0.005:
            logger.warning(
                f"PayFast amount {gross:.2f} for order {order.id} differs from order total "
                f"{order.data.total_amount:.2f}"
            )
        shares = commission.split(gross, self.commission_rate)
        transaction_id = notification.transaction_id

        def _complete(current: Optional[PaymentRecordData]) -> Optional[PaymentRecordData]:
            if current is None:
                return PaymentRecordData(
                    order_id=order.id,
                    amount=gross,
                    commission_amount=shares.commission,
                    merchant_amount=shares.net,
                    status="COMPLETED",
                    payment_method="PAYFAST",
                    transaction_id=transaction_id,
                    payer_id=order.data.user_id,
                    merchant_id=order.data.vendor_id,
                )
            if current.is_settled:
                return None
            current.amount = gross
            current.commission_amount = shares.commission
            current.merchant_amount = shares.net
            current.status = "COMPLETED"
            current.transaction_id = transaction_id
            return current

        record = await self._upsert_payment(order.id, _complete)
        try:
            await self.orders.mark_payment_received(
                order.id,
                payment_id=record.id,
                reference=f"PayFast payment {transaction_id}",
                amount=gross,
                actor_id=order.data.user_id,
            )
        except InvalidTransitionError as e:
            logger.info(f"Order {order.id} already past payment, notification treated as redelivery: {e}")
            return "duplicate"
        return "completed"

    async def _mark_unsettled(self, order: Order, status: str) -> None:
        def _fail(current: Optional[PaymentRecordData]) -> Optional[PaymentRecordData]:
            if current is None or current.is_settled or current.status == status:
                return None
            current.status = status
            return current

        record = await self._upsert_payment(order.id, _fail)
        if record is not None:
            logger.info(f"Payment {record.id} for order {order.id} is {record.data.status}")
        logger.info(f"Payment {status.lower()} for order {order.id}; order left to expire")

    # ------------------------------------------------------------------
    # Checkout & cash
    # ------------------------------------------------------------------

    async def _get_own_order(self, order_id: str, requester_id: str) -> Order:
        order = await self.orders.get(order_id)
        if order.data.user_id != requester_id:
            raise UnauthorizedError("Only the requester can pay for this order")
        return order

    async def create_checkout(self, order_id: str, requester_id: str) -> Checkout:
        order = await self._get_own_order(order_id, requester_id)
        if order.data.payment_method == "cash":
            raise InvalidRequestError("Cash orders are paid in person", code="cash_order")
        if order.data.status != "awaiting_payment":
            raise invalid_state("paid online", order.data.status, code="not_awaiting_payment")

        total = order.data.total_amount
        shares = commission.split(total, self.commission_rate)

        def _pending(current: Optional[PaymentRecordData]) -> Optional[PaymentRecordData]:
            if current is None:
                return PaymentRecordData(
                    order_id=order.id,
                    amount=total,
                    commission_amount=shares.commission,
                    merchant_amount=shares.net,
                    status="PENDING",
                    payment_method="PAYFAST",
                    payer_id=order.data.user_id,
                    merchant_id=order.data.vendor_id,
                )
            if current.is_settled:
                return None
            current.amount = total
            current.commission_amount = shares.commission
            current.merchant_amount = shares.net
            current.status = "PENDING"
            return current

        record = await self._upsert_payment(order.id, _pending)

        first_name, _, last_name = order.data.user_name.strip().partition(" ")
        description = ", ".join(item.item_name for item in order.data.items)
        form = self.payfast.build_payment_form(
            PaymentRequest(
                amount=total,
                item_name=f"Boleka order {order.id}"[:100],
                item_description=description[:255] or None,
                email=order.data.user_email,
                first_name=first_name or None,
                last_name=last_name or None,
                custom_str1=order.id,
                custom_str2=order.data.user_id,
                custom_str3=order.data.vendor_id,
            )
        )
        logger.info(f"Checkout created for order {order.id}: {total:.2f} via payment {record.id}")
        return Checkout(payment_id=record.id, process_url=self.payfast.config.process_url, form=form)

    async def confirm_cash_payment(self, order_id: str, requester_id: str) -> Order:
        order = await self._get_own_order(order_id, requester_id)
        if order.data.status != "cash_payment":
            raise invalid_state("paid in cash", order.data.status, code="not_cash_payment")

        total = order.data.total_amount
        shares = commission.split(total, self.commission_rate)

        def _cash(current: Optional[PaymentRecordData]) -> Optional[PaymentRecordData]:
            if current is None:
                return PaymentRecordData(
                    order_id=order.id,
                    amount=total,
                    commission_amount=shares.commission,
                    merchant_amount=shares.net,
                    status="COMPLETED",
                    payment_method="CASH",
                    transaction_id=f"cash-{order.id}",
                    payer_id=order.data.user_id,
                    merchant_id=order.data.vendor_id,
                )
            if current.is_settled:
                return None
            current.amount = total
            current.commission_amount = shares.commission
            current.merchant_amount = shares.net
            current.status = "COMPLETED"
            current.payment_method = "CASH"
            current.transaction_id = f"cash-{order.id}"
            return current

        record = await self._upsert_payment(order.id, _cash)
        return await self.orders.mark_payment_received(
            order.id,
            payment_id=record.id,
            reference="Cash payment",
            amount=total,
            actor_id=requester_id,
        )
