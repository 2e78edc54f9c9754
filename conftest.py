import asyncio
import os

# Service configuration is read at import time; pin it before any test imports main
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTH_ENABLED"] = "false"
os.environ["STORE_BACKEND"] = "memory"
os.environ["ORDER_EXPIRY_SCHEDULER_ENABLED"] = "false"
os.environ.pop("INTERNAL_API_KEY", None)
os.environ.pop("COMMISSION_RATE", None)

from datetime import datetime, timedelta, timezone

import pytest

from clients.memory import MemoryStore
from clients.store import CasMismatchError
from models.entities.documents.orders import OrderItem
from models.operations.orders import OrderService, OrderSettings, Requester

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

REQUESTER_ID = "user-thandi"
VENDOR_ID = "vendor-cape-hire"


class FakeClock:
    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier:
    def __init__(self) -> None:
        self.events = []

    async def order_transitioned(self, order, event) -> None:
        self.events.append((order.id, event))


@pytest.fixture
def clock():
    return FakeClock()


class InterleavingStore(MemoryStore):
    """Memory store that yields to the event loop on every read.

    Gathered operations then all read a document before any of them writes,
    so CAS conflicts actually happen. ``conflicts`` counts them.
    """

    def __init__(self) -> None:
        super().__init__()
        self.conflicts = 0

    async def get(self, collection, key):
        doc = await super().get(collection, key)
        await asyncio.sleep(0)
        return doc

    async def replace(self, collection, key, content, cas=None):
        try:
            return await super().replace(collection, key, content, cas=cas)
        except CasMismatchError:
            self.conflicts += 1
            raise


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def interleaving_store():
    return InterleavingStore()


@pytest.fixture
def interleaved_order_service(interleaving_store, clock, notifier):
    return OrderService(interleaving_store, settings=OrderSettings(), notifier=notifier, clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def order_service(store, clock, notifier):
    return OrderService(store, settings=OrderSettings(), notifier=notifier, clock=clock)


@pytest.fixture
def requester():
    return Requester(id=REQUESTER_ID, name="Thandi Nkosi", email="thandi@example.com")


@pytest.fixture
def make_item():
    def _make(unit_price=100.0, quantity=2, vendor_id=VENDOR_ID, item_id="tent-4p"):
        return OrderItem(
            id=f"line-{item_id}",
            item_id=item_id,
            item_name="Four-person tent",
            quantity=quantity,
            unit_price=unit_price,
            vendor_id=vendor_id,
            vendor_name="Cape Outdoor Hire",
        )

    return _make


@pytest.fixture
def place_order(order_service, requester, make_item):
    """Create an order and drive it to the requested status."""

    async def _place(status="awaiting_approval", payment_method="card", items=None):
        order = await order_service.create(
            requester, items or [make_item()], payment_method
        )
        if status == "awaiting_approval":
            return order
        order = await order_service.approve(order.id, VENDOR_ID)
        if status in ("awaiting_payment", "cash_payment"):
            return order
        order = await order_service.mark_payment_received(
            order.id, "pay-1", "test payment", order.data.total_amount, REQUESTER_ID
        )
        if status == "payment_received":
            return order
        raise ValueError(f"place_order cannot reach {status}")

    return _place


@pytest.fixture
def acting_user():
    """Claims returned for the caller; tests switch ``sub`` to act as someone else."""
    return {"sub": REQUESTER_ID, "email": "thandi@example.com", "name": "Thandi Nkosi"}


@pytest.fixture
def api_client(store, clock, notifier, acting_user):
    from fastapi.testclient import TestClient

    from app_state import build_services
    from main import app
    from routes.dependencies import current_user_get

    app.state.services = build_services(store, clock=clock, notifier=notifier)
    app.dependency_overrides[current_user_get] = lambda: acting_user
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    del app.state.services
