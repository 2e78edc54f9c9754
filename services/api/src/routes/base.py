from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app_state import AppServices
from utils import log

from .dependencies import get_services
from .internal import router as internal_router
from .orders import router as orders_router
from .payments import router as payments_router
from .wallet import router as wallet_router
from .webhooks import router as webhooks_router

logger = log.get_logger(__name__)

router = APIRouter(prefix="/api")
router.include_router(orders_router)
router.include_router(payments_router)
router.include_router(webhooks_router)
router.include_router(wallet_router)
router.include_router(internal_router)


@router.get("/health", tags=["health"])
async def route_health(services: AppServices = Depends(get_services)):
    try:
        await services.store.ping()
    except Exception as e:
        logger.warning(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ok"}
