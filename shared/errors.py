"""
Shared Errors Module - Standardized API Error Responses.

Every service raises subclasses of ``APIException``. The registered handlers
render them with the payload shape the console and the controller proxies
expect::

    {"statusCode": 404, "message": "...", "error": "Not Found",
     "error_code": "RESOURCE_NOT_FOUND", "request_id": "req_..."}

``message`` is passed through verbatim; remote callers match on it.
"""

import logging
import uuid
from enum import Enum
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses.

    Error codes are prefixed by category:
    - VALIDATION_*: Input validation errors
    - AUTH_*: Authentication/authorization errors
    - RESOURCE_*: Resource-related errors
    - SERVICE_*: Service-level errors
    """

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    BAD_REQUEST = "BAD_REQUEST"

    # Authentication errors
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    AUTHENTICATION_EXPIRED = "AUTHENTICATION_EXPIRED"
    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"

    # Resource errors
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Service errors
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVICE_TIMEOUT = "SERVICE_TIMEOUT"
    SERVICE_UPSTREAM_ERROR = "SERVICE_UPSTREAM_ERROR"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


# HTTP status code mappings
ERROR_STATUS_CODES: dict[str, int] = {
    ErrorCode.VALIDATION_ERROR.value: 400,
    ErrorCode.BAD_REQUEST.value: 400,
    ErrorCode.AUTHENTICATION_FAILED.value: 401,
    ErrorCode.AUTHENTICATION_EXPIRED.value: 401,
    ErrorCode.AUTHORIZATION_FAILED.value: 403,
    ErrorCode.RESOURCE_NOT_FOUND.value: 404,
    ErrorCode.RESOURCE_CONFLICT.value: 409,
    ErrorCode.RATE_LIMIT_EXCEEDED.value: 429,
    ErrorCode.SERVICE_UNAVAILABLE.value: 503,
    ErrorCode.SERVICE_TIMEOUT.value: 504,
    ErrorCode.SERVICE_UPSTREAM_ERROR.value: 502,
    ErrorCode.INTERNAL_ERROR.value: 500,
    ErrorCode.CONFIGURATION_ERROR.value: 500,
}


def get_status_code(error_code: str) -> int:
    """Get HTTP status code for error code.

    Args:
        error_code: Error code string.

    Returns:
        int: Appropriate HTTP status code.
    """
    return ERROR_STATUS_CODES.get(error_code, 500)


def _new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


class APIError(BaseModel):
    """Standardized API error response model.

    Attributes:
        status_code: HTTP status code, serialized as ``statusCode``.
        message: Human-readable error description.
        error: HTTP reason phrase for the status code.
        error_code: Machine-readable error code from ErrorCode enum.
        details: Optional additional context (field errors, etc.).
        request_id: Unique identifier for request tracing.
    """

    status_code: int = Field(..., serialization_alias="statusCode")
    message: str
    error: str
    error_code: str
    details: dict[str, Any] | None = None
    request_id: str = Field(default_factory=_new_request_id)


class APIException(Exception):
    """Exception wrapper for APIError responses.

    Raised from services and routers alike; FastAPI's exception handler
    turns it into a JSON response.

    Example:
        >>> raise APIException(ErrorCode.RESOURCE_NOT_FOUND, "Agent with ID 'x' not found")
    """

    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        error_code: ErrorCode | str | None = None,
        message: str = "",
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        code = error_code or self.default_code
        code = code.value if isinstance(code, ErrorCode) else code
        self.error_code = code
        self.message = message
        self.details = details
        self.status_code = status_code or get_status_code(code)
        super().__init__(message)

    def to_error(self) -> APIError:
        return APIError(
            status_code=self.status_code,
            message=self.message,
            error=HTTPStatus(self.status_code).phrase,
            error_code=self.error_code,
            details=self.details,
        )

    def to_response(self) -> dict[str, Any]:
        """Convert to dictionary for JSONResponse."""
        return self.to_error().model_dump(by_alias=True, exclude_none=True)


class BadRequestError(APIException):
    default_code = ErrorCode.BAD_REQUEST

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, details=details)


class UnauthorizedError(APIException):
    default_code = ErrorCode.AUTHENTICATION_FAILED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message)


class ForbiddenError(APIException):
    default_code = ErrorCode.AUTHORIZATION_FAILED

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message=message)


class NotFoundError(APIException):
    default_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, message: str):
        super().__init__(message=message)


class ServiceUnavailableError(APIException):
    default_code = ErrorCode.SERVICE_UNAVAILABLE

    def __init__(self, message: str):
        super().__init__(message=message)


_HTTP_STATUS_CODES: dict[int, ErrorCode] = {
    401: ErrorCode.AUTHENTICATION_FAILED,
    403: ErrorCode.AUTHORIZATION_FAILED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
}


def _http_exception_payload(status_code: int, message: str, error_code: str) -> dict[str, Any]:
    return APIError(
        status_code=status_code,
        message=message,
        error=HTTPStatus(status_code).phrase,
        error_code=error_code,
    ).model_dump(by_alias=True, exclude_none=True)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on ``app``."""

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            msg = str(error.get("msg", "")).removeprefix("Value error, ")
            messages.append(f"{location}: {msg}" if location else msg)
        return JSONResponse(
            status_code=400,
            content=_http_exception_payload(400, "; ".join(messages), ErrorCode.VALIDATION_ERROR.value),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _HTTP_STATUS_CODES.get(exc.status_code)
        if code is None:
            code = ErrorCode.BAD_REQUEST if exc.status_code < 500 else ErrorCode.INTERNAL_ERROR
        return JSONResponse(
            status_code=exc.status_code,
            content=_http_exception_payload(exc.status_code, str(exc.detail), code.value),
            headers=getattr(exc, "headers", None),
        )
