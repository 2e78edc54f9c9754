"""
Merchant wallet: balances aggregated from payment records, and payouts.

Balances are sums of ``merchant_amount``. A payout writes a DEBIT_PAYOUT wallet
transaction per record and then flags the record as paid; moving the money is
left to whoever settles with the bank. The transaction key is derived from the
payment, so a payout retried after a failure reuses the same ledger entry.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Sequence

from pydantic import BaseModel

from clients.store import DocumentExistsError, DocumentStore, Filter, Repository, Sort, utc_now
from models.entities.documents.payments import PaymentRecord, PaymentRecordData
from models.entities.documents.wallet_transactions import (
    WalletTransaction,
    WalletTransactionData,
)

from .cas import cas_retry
from .commission import round_money
from .errors import (
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
    OperationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TRANSACTIONS_PAGE = 50
MAX_TRANSACTIONS_PAGE = 200


class PaymentTotals(BaseModel):
    count: int = 0
    total_amount: float = 0.0
    total_commission: float = 0.0
    total_merchant_amount: float = 0.0


class WalletSummary(BaseModel):
    merchant_id: str
    available_balance: float
    pending_balance: float
    paid_out_total: float
    completed_sales_total: float
    credit_balance: float = 0.0
    total_balance: float
    totals: PaymentTotals
    payments: List[PaymentRecord] = []


class PayoutResult(BaseModel):
    merchant_id: str
    total_amount: float
    payment_ids: List[str]
    transaction_ids: List[str]


def _sum(values: Iterable[float]) -> float:
    return round_money(float(sum((Decimal(str(v)) for v in values), Decimal("0"))))


def payout_key(payment_id: str) -> str:
    return f"payout::{payment_id}"


class WalletService:
    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self.payments: Repository[PaymentRecord] = Repository(store, PaymentRecord, clock=clock)
        self.transactions: Repository[WalletTransaction] = Repository(
            store, WalletTransaction, clock=clock
        )

    async def _merchant_payments(self, merchant_id: str) -> List[PaymentRecord]:
        return await self.payments.find(
            Filter.eq("merchant_id", merchant_id), sort=Sort("created_at", descending=True)
        )

    async def summary(self, merchant_id: str) -> WalletSummary:
        payments = await self._merchant_payments(merchant_id)
        settled = [p.data for p in payments if p.data.is_settled]
        unsettled = [p.data for p in payments if not p.data.is_settled]

        available = _sum(p.merchant_amount for p in settled if not p.merchant_paid)
        paid_out = _sum(p.merchant_amount for p in settled if p.merchant_paid)
        pending = _sum(p.merchant_amount for p in unsettled)
        credit = 0.0

        return WalletSummary(
            merchant_id=merchant_id,
            available_balance=available,
            pending_balance=pending,
            paid_out_total=paid_out,
            completed_sales_total=_sum(p.merchant_amount for p in settled),
            credit_balance=credit,
            total_balance=_sum([available, credit, pending, paid_out]),
            totals=PaymentTotals(
                count=len(payments),
                total_amount=_sum(p.data.amount for p in payments),
                total_commission=_sum(p.data.commission_amount for p in payments),
                total_merchant_amount=_sum(p.data.merchant_amount for p in payments),
            ),
            payments=payments,
        )

    async def payout(
        self, merchant_id: str, payment_ids: Optional[Sequence[str]] = None
    ) -> PayoutResult:
        """Flag eligible payments as paid out.

        Eligible means settled (COMPLETED or PAID) and not yet paid out,
        optionally narrowed to *payment_ids*. Records a concurrent payout got
        to first are skipped.
        """
        eligible = [
            p
            for p in await self._merchant_payments(merchant_id)
            if p.data.is_settled and not p.data.merchant_paid
        ]
        if payment_ids is not None:
            wanted = set(payment_ids)
            eligible = [p for p in eligible if p.id in wanted]
        if not eligible:
            raise InvalidRequestError("No payments are eligible for payout", code="nothing_to_pay_out")

        now = self._clock()

        def _mark_paid(data: PaymentRecordData) -> Optional[OperationError]:
            if data.merchant_id != merchant_id:
                return InvalidRequestError("Payment belongs to another merchant")
            if not data.is_settled or data.merchant_paid:
                return InvalidTransitionError("Payment already paid out", code="already_paid_out")
            data.merchant_paid = True
            data.merchant_payout_date = now
            data.status = "PAID"
            return None

        paid: List[PaymentRecord] = []
        transaction_ids: List[str] = []
        for candidate in eligible:
            # Ledger first: a record is never flagged paid without its entry
            transaction_id = await self._record_payout(merchant_id, candidate)
            try:
                record = await cas_retry(
                    self.payments,
                    candidate.id,
                    _mark_paid,
                    on_missing=lambda: NotFoundError("Payment not found"),
                )
            except (InvalidTransitionError, NotFoundError) as e:
                logger.info(f"Skipping payout of payment {candidate.id}: {e}")
                continue
            paid.append(record)
            transaction_ids.append(transaction_id)

        if not paid:
            raise InvalidRequestError("No payments are eligible for payout", code="nothing_to_pay_out")

        result = PayoutResult(
            merchant_id=merchant_id,
            total_amount=_sum(p.data.merchant_amount for p in paid),
            payment_ids=[p.id for p in paid],
            transaction_ids=transaction_ids,
        )
        logger.info(
            f"Payout for merchant {merchant_id}: {result.total_amount:.2f} "
            f"over {len(result.payment_ids)} payments"
        )
        return result

    async def list_transactions(
        self, user_id: str, limit: int = DEFAULT_TRANSACTIONS_PAGE
    ) -> List[WalletTransaction]:
        """Most recent wallet transactions first. *limit* is clamped to 1..200."""
        limit = max(1, min(limit, MAX_TRANSACTIONS_PAGE))
        return await self.transactions.find(
            Filter.eq("user_id", user_id),
            sort=Sort("created_at", descending=True),
            limit=limit,
        )

    async def _record_payout(self, merchant_id: str, record: PaymentRecord) -> str:
        key = payout_key(record.id)
        try:
            await self.transactions.create(
                WalletTransactionData(
                    user_id=merchant_id,
                    amount=record.data.merchant_amount,
                    related_payment_id=record.id,
                    related_order_id=record.data.order_id,
                ),
                key=key,
                user_id=merchant_id,
            )
        except DocumentExistsError:
            logger.info(f"Payout transaction {key} already recorded")
        return key
