from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Request

from models.operations.errors import OperationError
from models.operations.payments import PaymentReconciler
from utils import log
from .dependencies import get_payment_reconciler

logger = log.get_logger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payfast")
async def route_payfast_webhook(
    request: Request,
    payments: PaymentReconciler = Depends(get_payment_reconciler),
):
    """PayFast ITN. Field order is preserved for signature verification."""
    payload = await request.body()
    try:
        fields = dict(parse_qsl(payload.decode("utf-8"), keep_blank_values=True))
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Notification body is not valid UTF-8")

    try:
        outcome = await payments.handle_notification(fields)
    except OperationError:
        raise
    except Exception as e:
        logger.error(f"Error processing PayFast notification: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Processing failed")

    logger.info(f"PayFast notification for order {fields.get('custom_str1')} handled: {outcome}")
    return {"success": True}
