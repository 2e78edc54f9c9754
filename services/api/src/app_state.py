"""Wiring of the store and domain services held on ``app.state``."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import conf
from conf.payfast import get_payfast_conf
from utils import log

from clients.memory import MemoryStore
from clients.payfast import PayFastClient
from clients.store import DocumentStore, utc_now
from models.operations.notifications import OrderNotifier
from models.operations.orders import OrderService
from models.operations.payments import PaymentReconciler
from models.operations.wallet import WalletService

logger = log.get_logger(__name__)


@dataclass
class AppServices:
    store: DocumentStore
    orders: OrderService
    payments: PaymentReconciler
    wallet: WalletService


def build_store() -> DocumentStore:
    backend = conf.get_store_backend()
    if backend == "memory":
        logger.warning("Using the in-memory document store, data is lost on restart")
        return MemoryStore()

    from clients.couchbase import CouchbaseStore
    from conf.couchbase import get_couchbase_conf

    return CouchbaseStore(get_couchbase_conf())


def build_services(
    store: DocumentStore,
    clock: Callable[[], datetime] = utc_now,
    notifier: Optional[OrderNotifier] = None,
) -> AppServices:
    settings = conf.get_order_settings()
    orders = OrderService(store, settings=settings, notifier=notifier, clock=clock)
    payfast = PayFastClient(get_payfast_conf(production=conf.is_production()))
    if not payfast.verify_signatures:
        logger.warning("PayFast signature verification is disabled outside production")
    return AppServices(
        store=store,
        orders=orders,
        payments=PaymentReconciler(
            store,
            orders,
            payfast,
            commission_rate=settings.commission_rate,
            clock=clock,
        ),
        wallet=WalletService(store, clock=clock),
    )
