"""APScheduler setup for the periodic order expiry sweep."""

from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from models.operations.orders import OrderService
from utils import log

logger = log.get_logger(__name__)

_scheduler: Optional[AsyncIOScheduler] = None


async def expire_orders_job(orders: OrderService):
    """Expire orders past their approval or payment deadline."""
    try:
        expired = await orders.expire_stale_orders()
    except Exception as e:
        logger.error(f"Order expiry sweep failed: {e}", exc_info=True)
        return
    logger.info(f"Order expiry sweep completed, {len(expired)} orders expired")


def init_scheduler(orders: OrderService, interval_minutes: int) -> AsyncIOScheduler:
    """Start the APScheduler with the order expiry job."""
    global _scheduler
    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        expire_orders_job,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[orders],
        id="order_expiry",
        name="Order Expiry Sweep",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    _scheduler.start()
    logger.info(f"APScheduler started with order expiry every {interval_minutes} minutes")
    return _scheduler


def shutdown_scheduler():
    """Gracefully shut down the scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("APScheduler shut down")
