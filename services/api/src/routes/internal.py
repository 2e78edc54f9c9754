"""
Internal endpoints for operators and cron callers.
Secured with INTERNAL_API_KEY, not exposed publicly.
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from models.operations.orders import OrderService
from utils import log
from .dependencies import get_order_service, require_internal_api_key

logger = log.get_logger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


class ExpireOrdersResponse(BaseModel):
    expired: List[str]
    count: int


@router.post("/orders/expire", response_model=ExpireOrdersResponse)
async def internal_expire_orders(
    _: None = Depends(require_internal_api_key),
    orders: OrderService = Depends(get_order_service),
):
    """Run the expiry sweep now instead of waiting for the scheduler."""
    expired = await orders.expire_stale_orders()
    logger.info(f"Manual expiry sweep expired {len(expired)} orders")
    return ExpireOrdersResponse(expired=expired, count=len(expired))
