from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import conf
from app_state import AppServices
from utils import log

from models.operations.orders import OrderService
from models.operations.payments import PaymentReconciler
from models.operations.wallet import WalletService

logger = log.get_logger(__name__)

security = HTTPBearer()


async def current_user_get(request: Request, token: HTTPAuthorizationCredentials = Depends(security)):
    if hasattr(request.app.state, "auth_client"):
        if payload := request.app.state.auth_client.decode_jwt(token.credentials):
            if not payload.get("sub"):
                raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")

            # Some providers send email as a list of {value: ...}
            email = payload.get("email")
            if isinstance(email, list):
                item = email[0] if email else None
                payload["email"] = item.get("value") if isinstance(item, dict) else item

            return payload
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No auth_client")


async def require_authenticated(user: dict = Depends(current_user_get)) -> dict:
    """Claims of the acting user; ``user["sub"]`` is their id."""
    return user


async def require_internal_api_key(
    x_internal_api_key: Optional[str] = Header(None, alias="X-Internal-API-Key"),
):
    expected = conf.get_internal_api_key()
    if not expected:
        # No key configured: internal callers are trusted (development)
        return
    if x_internal_api_key != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid internal API key",
        )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_order_service(services: AppServices = Depends(get_services)) -> OrderService:
    return services.orders


def get_payment_reconciler(services: AppServices = Depends(get_services)) -> PaymentReconciler:
    return services.payments


def get_wallet_service(services: AppServices = Depends(get_services)) -> WalletService:
    return services.wallet
