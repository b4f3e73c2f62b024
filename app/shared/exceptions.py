"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationException(AppException):
    """Raised when input is missing or malformed."""

    status_code = 400
    code = "validation_error"


class InvalidTransitionException(AppException):
    """Raised when a status change is not allowed from the current state."""

    status_code = 400
    code = "invalid_transition"


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class CapacityExceededException(ConflictException):
    """Raised when a slot has fewer remaining seats than requested."""

    code = "capacity_exceeded"


class AuthenticationException(AppException):
    """Raised when credentials are missing or invalid."""

    status_code = 401
    code = "unauthorized"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class RateLimitException(AppException):
    """Raised when a client exceeds the request budget."""

    status_code = 429
    code = "rate_limited"


class ExternalSyncError(Exception):
    """Failure talking to calendar, spreadsheet or messaging providers.

    Never rendered to API clients: adapters catch it and degrade.
    """


def _error_payload(message: str, code: str) -> dict[str, str]:
    return {"error": message, "code": code}


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.message, exc.code))


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(str(exc.detail), "http_error"),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_exception_handler(
    _: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Render body/query validation failures as 400 with the first problem."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", message)
    return JSONResponse(status_code=400, content=_error_payload(message, ValidationException.code))


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content=_error_payload("Internal server error", "internal_error"),
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
