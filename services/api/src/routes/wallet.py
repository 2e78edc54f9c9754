from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from models.entities.documents.wallet_transactions import WalletTransaction
from models.operations.wallet import (
    DEFAULT_TRANSACTIONS_PAGE,
    PayoutResult,
    WalletService,
    WalletSummary,
)
from utils import log
from .dependencies import get_wallet_service, require_authenticated

logger = log.get_logger(__name__)

router = APIRouter(prefix="/wallet", tags=["wallet"])


class PayoutRequest(BaseModel):
    payment_ids: Optional[List[str]] = None


@router.get("/", response_model=WalletSummary)
async def route_wallet_get(
    user: dict = Depends(require_authenticated),
    wallet: WalletService = Depends(get_wallet_service),
):
    return await wallet.summary(user["sub"])


@router.post("/payout", response_model=PayoutResult)
async def route_wallet_payout(
    body: PayoutRequest,
    user: dict = Depends(require_authenticated),
    wallet: WalletService = Depends(get_wallet_service),
):
    """Flag settled payments as paid out. Funds are transferred outside this service."""
    return await wallet.payout(user["sub"], payment_ids=body.payment_ids)


@router.get("/transactions", response_model=List[WalletTransaction])
async def route_wallet_transactions_list(
    limit: int = Query(DEFAULT_TRANSACTIONS_PAGE),
    user: dict = Depends(require_authenticated),
    wallet: WalletService = Depends(get_wallet_service),
):
    return await wallet.list_transactions(user["sub"], limit=limit)
