"""
Error taxonomy for the Archiflow API.

Every failure a request can hit is an ``ArchiflowError`` subclass carrying
its HTTP status, a stable machine-readable code and a human-readable
message. ``register_error_handlers`` renders them as JSON.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .utils.logging import get_logger

logger = get_logger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    code: str
    error: str
    details: dict[str, Any] = Field(default_factory=dict)


class ArchiflowError(Exception):
    """Base exception for the API."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(code=self.code, error=self.message, details=self.details)


class Unauthenticated(ArchiflowError):
    """The caller did not prove who they are."""

    status_code = 401
    code = "UNAUTHENTICATED"


class MissingCredential(Unauthenticated):
    code = "MISSING_CREDENTIAL"

    def __init__(self, message: str = "No token provided"):
        super().__init__(message)


class InvalidCredential(Unauthenticated):
    code = "INVALID_CREDENTIAL"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class AccessDenied(ArchiflowError):
    status_code = 403
    code = "ACCESS_DENIED"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFound(ArchiflowError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, what: str = "Resource"):
        super().__init__(f"{what} not found")


class InvalidKey(ArchiflowError):
    """A record id or field name is not a plain database key."""

    status_code = 422
    code = "INVALID_KEY"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Invalid key: {key!r}", {"key": key})


class RateLimited(ArchiflowError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, limit: int, window_seconds: float, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            f"Too many requests: at most {limit} per {window_seconds:g}s. "
            f"Retry after {retry_after}s.",
            {"limit": limit, "retry_after": retry_after},
        )

    @property
    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after)}


class InsufficientCredits(ArchiflowError):
    status_code = 402
    code = "INSUFFICIENT_CREDITS"

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient credits: {available} available, {required} required",
            {"available": available, "required": required},
        )


class AccountNotFound(ArchiflowError):
    """A verified user has no credit account record."""

    status_code = 402
    code = "ACCOUNT_NOT_FOUND"

    def __init__(self, uid: str):
        self.uid = uid
        super().__init__("No credit account exists for this user")


class UpstreamUnavailable(ArchiflowError):
    """The database or the identity provider could not be reached."""

    status_code = 503
    code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, service: str, message: str = "unavailable"):
        self.service = service
        super().__init__(f"{service}: {message}", {"service": service})


class UpstreamTimeout(ArchiflowError):
    status_code = 504
    code = "UPSTREAM_TIMEOUT"

    def __init__(self, service: str, timeout: float):
        self.service = service
        super().__init__(
            f"{service}: no response within {timeout:g}s",
            {"service": service, "timeout": timeout},
        )


class DownstreamFailure(ArchiflowError):
    """The protected AI operation failed after the caller was charged."""

    status_code = 502
    code = "DOWNSTREAM_FAILURE"

    def __init__(self, message: str):
        super().__init__(f"AI provider error: {message}")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ArchiflowError)
    async def archiflow_error_handler(request: Request, exc: ArchiflowError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "Request failed",
            path=request.url.path,
            status=exc.status_code,
            code=exc.code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(code="INTERNAL_ERROR", error="Internal server error").model_dump(),
        )
