from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from models.entities.documents.order_status_updates import OrderStatusUpdate
from models.entities.documents.orders import (
    STATUS_DISPLAY,
    Order,
    OrderItem,
    OrderPaymentStatus,
    OrderStatus,
    PaymentMethod,
)
from models.operations.orders import OrderService, Requester
from utils import log
from .dependencies import get_order_service, require_authenticated

logger = log.get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------

class OrderItemRequest(BaseModel):
    item_id: str
    item_name: str
    item_image: Optional[str] = None
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)
    vendor_id: str
    vendor_name: str


class CreateOrderRequest(BaseModel):
    items: List[OrderItemRequest]
    payment_method: PaymentMethod
    notes: Optional[str] = None
    vendor_email: Optional[str] = None
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None


class ApproveOrderRequest(BaseModel):
    notes: Optional[str] = None


class DeclineOrderRequest(BaseModel):
    reason: str = Field(min_length=1)


class CancelOrderRequest(BaseModel):
    reason: str = Field(default="Cancelled by user", min_length=1)


class CollectRequest(BaseModel):
    token: str


class CollectionTokenResponse(BaseModel):
    order_id: str
    token: str
    expires_at: datetime


class OrderResponse(BaseModel):
    id: str
    user_id: str
    user_name: str
    user_email: str
    user_phone: Optional[str] = None
    vendor_id: str
    vendor_name: str
    items: List[OrderItem]
    subtotal: float
    platform_fee: float
    total_amount: float
    status: OrderStatus
    status_display: str
    payment_method: PaymentMethod
    approved_at: Optional[datetime] = None
    payment_due_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    payment_id: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_amount: Optional[float] = None
    payment_status: Optional[OrderPaymentStatus] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    vendor_approval_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusUpdateResponse(BaseModel):
    status: OrderStatus
    status_display: str
    notes: str
    updated_by: str
    timestamp: datetime


def order_to_response(order: Order) -> OrderResponse:
    d = order.data
    return OrderResponse(
        id=order.id,
        user_id=d.user_id,
        user_name=d.user_name,
        user_email=d.user_email,
        user_phone=d.user_phone,
        vendor_id=d.vendor_id,
        vendor_name=d.vendor_name,
        items=d.items,
        subtotal=d.subtotal,
        platform_fee=d.platform_fee,
        total_amount=d.total_amount,
        status=d.status,
        status_display=STATUS_DISPLAY[d.status],
        payment_method=d.payment_method,
        approved_at=d.approved_at,
        payment_due_at=d.payment_due_at,
        expires_at=d.expires_at,
        completed_at=d.completed_at,
        payment_id=d.payment_id,
        payment_reference=d.payment_reference,
        payment_amount=d.payment_amount,
        payment_status=d.payment_status,
        notes=d.notes,
        cancellation_reason=d.cancellation_reason,
        vendor_approval_notes=d.vendor_approval_notes,
        created_at=d.created_at,
        updated_at=d.updated_at,
    )


def _status_update_to_response(update: OrderStatusUpdate) -> StatusUpdateResponse:
    return StatusUpdateResponse(
        status=update.data.status,
        status_display=STATUS_DISPLAY[update.data.status],
        notes=update.data.notes,
        updated_by=update.data.updated_by,
        timestamp=update.data.timestamp,
    )


def _requester_from_claims(user: dict, body: CreateOrderRequest) -> Requester:
    email = user.get("email") or ""
    name = user.get("name") or body.requester_name or email or user["sub"]
    return Requester(
        id=user["sub"],
        name=name,
        email=email,
        phone=user.get("phone_number") or body.requester_phone,
    )


# ---------------------------------------------------------------------------
# Requester & vendor views
# ---------------------------------------------------------------------------

@router.post("/", response_model=OrderResponse, status_code=201)
async def route_order_create(
    body: CreateOrderRequest,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    items = [
        OrderItem(id=f"line-{i + 1}", **item.model_dump())
        for i, item in enumerate(body.items)
    ]
    order = await orders.create(
        _requester_from_claims(user, body),
        items,
        body.payment_method,
        notes=body.notes,
        vendor_email=body.vendor_email,
    )
    return order_to_response(order)


@router.get("/", response_model=List[OrderResponse])
async def route_orders_list(
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    return [order_to_response(o) for o in await orders.get_user_orders(user["sub"])]


@router.get("/vendor", response_model=List[OrderResponse])
async def route_vendor_orders_list(
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    return [order_to_response(o) for o in await orders.get_vendor_orders(user["sub"])]


@router.get("/vendor/pending", response_model=List[OrderResponse])
async def route_vendor_pending_orders_list(
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    """Orders waiting for this vendor's decision, oldest first."""
    return [order_to_response(o) for o in await orders.get_pending_approval_orders(user["sub"])]


# ---------------------------------------------------------------------------
# POST /orders/collect: vendor scans the requester's QR code
# ---------------------------------------------------------------------------

@router.post("/collect", response_model=OrderResponse)
async def route_order_collect(
    body: CollectRequest,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    order = await orders.complete_with_token(body.token, user["sub"])
    return order_to_response(order)


# ---------------------------------------------------------------------------
# Single order
# ---------------------------------------------------------------------------

@router.get("/{order_id}", response_model=OrderResponse)
async def route_order_get(
    order_id: str,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    return order_to_response(await orders.get_for_party(order_id, user["sub"]))


@router.get("/{order_id}/history", response_model=List[StatusUpdateResponse])
async def route_order_history(
    order_id: str,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    await orders.get_for_party(order_id, user["sub"])
    return [_status_update_to_response(u) for u in await orders.get_status_history(order_id)]


@router.post("/{order_id}/approve", response_model=OrderResponse)
async def route_order_approve(
    order_id: str,
    body: ApproveOrderRequest,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    return order_to_response(await orders.approve(order_id, user["sub"], notes=body.notes))


@router.post("/{order_id}/decline", response_model=OrderResponse)
async def route_order_decline(
    order_id: str,
    body: DeclineOrderRequest,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    return order_to_response(await orders.decline(order_id, user["sub"], body.reason))


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def route_order_cancel(
    order_id: str,
    body: CancelOrderRequest,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    return order_to_response(await orders.cancel(order_id, user["sub"], body.reason))


@router.post("/{order_id}/collection-token", response_model=CollectionTokenResponse)
async def route_order_collection_token(
    order_id: str,
    user: dict = Depends(require_authenticated),
    orders: OrderService = Depends(get_order_service),
):
    issued = await orders.generate_collection_token(order_id, user["sub"])
    return CollectionTokenResponse(order_id=order_id, token=issued.token, expires_at=issued.expires_at)
