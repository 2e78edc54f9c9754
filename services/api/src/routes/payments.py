from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from models.operations.payments import PaymentReconciler
from utils import log
from .dependencies import get_payment_reconciler, require_authenticated
from .orders import OrderResponse, order_to_response

logger = log.get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


class PaymentOrderRequest(BaseModel):
    order_id: str


class CheckoutResponse(BaseModel):
    payment_id: str
    process_url: str
    form: Dict[str, str]


@router.post("/checkout", response_model=CheckoutResponse)
async def route_payment_checkout(
    body: PaymentOrderRequest,
    user: dict = Depends(require_authenticated),
    payments: PaymentReconciler = Depends(get_payment_reconciler),
):
    """Signed PayFast form fields; the client posts them to ``process_url``."""
    checkout = await payments.create_checkout(body.order_id, user["sub"])
    return CheckoutResponse(
        payment_id=checkout.payment_id,
        process_url=checkout.process_url,
        form=checkout.form,
    )


@router.post("/cash", response_model=OrderResponse)
async def route_payment_cash(
    body: PaymentOrderRequest,
    user: dict = Depends(require_authenticated),
    payments: PaymentReconciler = Depends(get_payment_reconciler),
):
    order = await payments.confirm_cash_payment(body.order_id, user["sub"])
    return order_to_response(order)
