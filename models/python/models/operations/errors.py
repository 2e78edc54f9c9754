from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    UPSTREAM_FAILURE = "upstream_failure"


class OperationError(Exception):
    """Base class for expected failures of order, payment and wallet operations.

    ``kind`` places the error in the taxonomy the HTTP layer maps to status
    codes; ``code`` is a stable machine-readable reason for support tooling.
    """

    kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE
    default_code = "error"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class InvalidRequestError(OperationError):
    kind = ErrorKind.VALIDATION
    default_code = "invalid_request"


class UnauthorizedError(OperationError):
    kind = ErrorKind.UNAUTHORIZED
    default_code = "unauthorized"


class NotFoundError(OperationError):
    kind = ErrorKind.NOT_FOUND
    default_code = "not_found"


class InvalidTransitionError(OperationError):
    kind = ErrorKind.INVALID_TRANSITION
    default_code = "invalid_transition"


class UpstreamFailureError(OperationError):
    kind = ErrorKind.UPSTREAM_FAILURE
    default_code = "upstream_failure"


def invalid_state(action: str, status: str, code: str = "invalid_transition") -> InvalidTransitionError:
    return InvalidTransitionError(
        f"Order cannot be {action} in its current state ({status})", code=code
    )
