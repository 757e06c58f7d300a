"""Operation outcomes and the error taxonomy shared by all components.

Boundary operations never raise for expected conditions: they return an
``Outcome`` carrying either data or an ``OperationError``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorType(str, Enum):
    """Kind of failure, used by the API layer to pick a status code."""
    STATE_ERROR = "state_error"
    FORBIDDEN_ACCESS = "forbidden_access"
    INVALID_PARAMETER = "invalid_parameter"
    NOT_FOUND = "not_found"
    TOO_MANY_REQUESTS = "too_many_requests"
    SERVER_ERROR = "server_error"


_HTTP_STATUS = {
    ErrorType.STATE_ERROR: 400,
    ErrorType.FORBIDDEN_ACCESS: 401,
    ErrorType.INVALID_PARAMETER: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.TOO_MANY_REQUESTS: 429,
    ErrorType.SERVER_ERROR: 500,
}


class OperationError(BaseModel):
    error_type: ErrorType
    message: str


class Outcome(BaseModel, Generic[T]):
    """Either ``data`` or ``error`` of a boundary operation."""

    data: T | None = None
    error: OperationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def success(data: Any = None) -> Outcome[Any]:
    return Outcome(data=data)


def failure(error_type: ErrorType, message: str) -> Outcome[Any]:
    return Outcome(error=OperationError(error_type=error_type, message=message))


def state_error(message: str) -> Outcome[Any]:
    return failure(ErrorType.STATE_ERROR, message)


def invalid_param_error(message: str) -> Outcome[Any]:
    return failure(ErrorType.INVALID_PARAMETER, message)


def not_found_error(message: str) -> Outcome[Any]:
    return failure(ErrorType.NOT_FOUND, message)


def internal_server_error(exc: BaseException) -> Outcome[Any]:
    """Log an unexpected exception and hide its details from the caller."""
    logger.error("Unexpected error: %s", exc, exc_info=exc)
    return failure(ErrorType.SERVER_ERROR, INTERNAL_ERROR_MESSAGE)


def http_status_for(error: OperationError) -> int:
    return _HTTP_STATUS.get(error.error_type, 500)
