"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
and validation errors into proper HTTP responses with appropriate status codes.

Mapping (most specific class wins, Starlette walks the exception's MRO):
- ValidationException, UnreadableAudioError, RequestValidationError -> 422
- EntityNotFoundException -> 404
- RemoteAccessDeniedError -> 403
- RemoteListingError, ExternalServiceError, httpx.HTTPError -> 502
- BusinessRuleViolation (EmptySnapshotRejectedError) -> 409
- ConfigurationError -> 503
"""

import json
import logging
from typing import Any

import httpx
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from muzak.domain.exceptions import (
    BusinessRuleViolation,
    ConfigurationError,
    DomainException,
    EmptySnapshotRejectedError,
    EntityNotFoundException,
    ExternalServiceError,
    RemoteAccessDeniedError,
    UnreadableAudioError,
    ValidationException,
)

logger = logging.getLogger(__name__)

# starlette renamed the 422 constant; the number never changes
HTTP_422 = 422

DOMAIN_STATUS_CODES: dict[type[Exception], int] = {
    ValidationException: HTTP_422,
    UnreadableAudioError: HTTP_422,
    EntityNotFoundException: status.HTTP_404_NOT_FOUND,
    RemoteAccessDeniedError: status.HTTP_403_FORBIDDEN,
    ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
    BusinessRuleViolation: status.HTTP_409_CONFLICT,
    ConfigurationError: status.HTTP_503_SERVICE_UNAVAILABLE,
    httpx.HTTPError: status.HTTP_502_BAD_GATEWAY,
}


def status_code_for(exc: Exception) -> int:
    """HTTP status for an exception, by its most specific mapped class."""
    for cls in type(exc).__mro__:
        if cls in DOMAIN_STATUS_CODES:
            return DOMAIN_STATUS_CODES[cls]
    if isinstance(exc, DomainException):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_message(exc: Exception) -> str:
    if isinstance(exc, DomainException):
        return exc.message
    if isinstance(exc, httpx.HTTPError):
        return f"Network error talking to Google Drive: {type(exc).__name__}"
    return str(exc)


# Hey future me - this helper converts bytes to strings in validation error dicts!
# Pydantic's exc.errors() can include the raw request body as bytes in the 'input' field
# (a multipart upload that failed validation, for one), which JSONResponse can't serialize.
def _sanitize_validation_errors(
    errors: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Sanitize validation errors by converting bytes to strings.

    Args:
        errors: List of validation error dictionaries from Pydantic

    Returns:
        Sanitized list where bytes are converted to strings
    """

    def _sanitize_value(value: Any) -> Any:
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                return value.decode("latin-1")
        elif isinstance(value, dict):
            return {k: _sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_sanitize_value(item) for item in value]
        elif isinstance(value, tuple):
            return tuple(_sanitize_value(item) for item in value)
        elif isinstance(value, Exception):
            return str(value)
        return value

    return [_sanitize_value(error) for error in errors]


# Hey future me, this registers GLOBAL exception handlers for the entire app! Domain
# exceptions raised anywhere below a route end up here and leave as {"detail": ...} with
# the status from DOMAIN_STATUS_CODES. Must be called during app setup (see main.py).
def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers for domain and validation exceptions.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        """Handle every domain exception with its mapped status code."""
        status_code = status_code_for(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "%s at %s: %s",
            type(exc).__name__,
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    @app.exception_handler(EmptySnapshotRejectedError)
    async def empty_snapshot_rejected_handler(
        request: Request, exc: EmptySnapshotRejectedError
    ) -> JSONResponse:
        """Handle a rejected empty import with 409 Conflict and the kept counts."""
        logger.warning(
            "Empty snapshot import rejected at %s",
            request.url.path,
            extra={"path": request.url.path, **exc.existing_counts},
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "success": False,
                "detail": exc.message,
                "counts": exc.existing_counts,
            },
        )

    @app.exception_handler(httpx.HTTPError)
    async def upstream_http_error_handler(
        request: Request, exc: httpx.HTTPError
    ) -> JSONResponse:
        """Handle network errors towards Drive/the mirror with 502 Bad Gateway."""
        logger.error(
            "Upstream HTTP error at %s: %s: %s",
            request.url.path,
            type(exc).__name__,
            exc,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": error_message(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic request validation errors with 422 Unprocessable Entity."""
        sanitized_errors = _sanitize_validation_errors(list(exc.errors()))

        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            sanitized_errors,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=HTTP_422,
            content={"detail": sanitized_errors},
        )

    @app.exception_handler(json.JSONDecodeError)
    async def json_decode_error_handler(
        request: Request, exc: json.JSONDecodeError
    ) -> JSONResponse:
        """Handle malformed JSON with 400 Bad Request."""
        logger.warning(
            "Malformed JSON at %s: %s",
            request.url.path,
            str(exc),
            extra={"path": request.url.path, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": f"Malformed JSON: {exc.msg}"},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle HTTP exceptions with proper logging."""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "HTTP error %d at %s: %s",
            exc.status_code,
            request.url.path,
            exc.detail,
            extra={
                "path": request.url.path,
                "status_code": exc.status_code,
                "detail": exc.detail,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )
