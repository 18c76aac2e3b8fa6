from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

ERROR_NAMES: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "BadRequest",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "NotFound",
    status.HTTP_405_METHOD_NOT_ALLOWED: "MethodNotAllowed",
    status.HTTP_409_CONFLICT: "Conflict",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal Server Error",
}


class DomainError(ValueError):
    """Business-rule failure raised by the CRUD layer.

    Subclasses carry the HTTP status the API should answer with, so handlers
    never need to string-match database messages.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    error = "BadRequest"

    def __init__(self, message: str, *, error: str | None = None, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error:
            self.error = error
        self.details = details


class BadRequestError(DomainError):
    pass


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "NotFound"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class EmailVerificationRequired(ForbiddenError):
    error = "EmailVerificationRequired"

    def __init__(self, message: str = "Email must be verified before linking OAuth provider") -> None:
        super().__init__(message)


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        error: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"error": error, "message": message, "statusCode": status_code}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    error = ERROR_NAMES.get(exc.status_code, "Error")
    if isinstance(detail, dict):
        error = detail.get("error", error)
        message = detail.get("message", error)
    else:
        message = detail if isinstance(detail, str) else error
    return ErrorEnvelope(
        status_code=exc.status_code,
        error=error,
        message=message,
        headers=getattr(exc, "headers", None),
    )


def _first_validation_message(errors: list[dict[str, Any]]) -> str:
    if not errors:
        return "Validation failed"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = str(first.get("msg", "Invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    return ErrorEnvelope(
        status_code=status.HTTP_400_BAD_REQUEST,
        error="ValidationError",
        message=_first_validation_message(list(errors)),
    )


async def domain_error_handler(request: Request, exc: DomainError):
    return ErrorEnvelope(
        status_code=exc.status_code,
        error=exc.error,
        message=exc.message,
        details=exc.details,
    )


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return ErrorEnvelope(
        status_code=status.HTTP_409_CONFLICT,
        error="Conflict",
        message="Request conflicts with existing data",
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return ErrorEnvelope(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="Internal Server Error",
        message="An unexpected error occurred",
    )
