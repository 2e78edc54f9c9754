from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from clients.store import StoreError
from models.operations.errors import ErrorKind, OperationError
from utils import log

logger = log.get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.UPSTREAM_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def operation_error_handler(request: Request, exc: OperationError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.code})")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message} ({exc.code})")
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} storage failure: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage is unavailable, please retry", "code": "upstream_failure"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OperationError, operation_error_handler)
    app.add_exception_handler(StoreError, store_error_handler)
