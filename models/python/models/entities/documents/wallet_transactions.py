from typing import Literal, Optional
from clients.store import BaseDocumentModel, BaseEntityData


class WalletTransactionData(BaseEntityData):
    user_id: str
    type: Literal["DEBIT_PAYOUT"] = "DEBIT_PAYOUT"
    amount: float
    currency: str = "ZAR"
    related_payment_id: str
    related_order_id: Optional[str] = None


class WalletTransaction(BaseDocumentModel[WalletTransactionData]):
    _collection_name = "wallet_transactions"
