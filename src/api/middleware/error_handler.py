"""Exception handlers translating domain errors into the JSON error envelope."""

import logging
import traceback
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.shared.config import get_settings
from src.shared.datetime_utils import datetime_to_iso, utc_now
from src.shared.exceptions import (
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    NoContentAvailableError,
    QuizEngineException,
    ResourceNotFoundError,
    ValidationError as DomainValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order, so subclasses come before their parents
_DOMAIN_STATUS: list[tuple[type[QuizEngineException], int, str]] = [
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED, "AUTHENTICATION_ERROR"),
    (NoContentAvailableError, status.HTTP_404_NOT_FOUND, "NO_CONTENT"),
    (ResourceNotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (ConflictError, status.HTTP_409_CONFLICT, "CONFLICT"),
    (DomainValidationError, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR"),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE, "SERVICE_UNAVAILABLE"),
]


def create_error_response(
    request_id: str,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the error envelope shared by every failing response."""
    return {
        "success": False,
        "error": {
            "code": error_code,
            "message": message,
            "details": details or {},
        },
        "request_id": request_id,
        "timestamp": datetime_to_iso(utc_now()),
    }


def map_domain_exception(exc: QuizEngineException) -> tuple[int, str]:
    """Return the (HTTP status, error code) pair for a domain exception."""
    for exc_type, status_code, error_code in _DOMAIN_STATUS:
        if isinstance(exc, exc_type):
            return status_code, error_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "DOMAIN_ERROR"


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid4())


def _respond(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = create_error_response(_request_id(request), error_code, message, details)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the handlers on ``app``."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {
                "field": " -> ".join(str(part) for part in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        logger.warning(
            f"Rejected request body on {request.url.path}: {len(errors)} errors",
            extra={"request_id": _request_id(request), "errors": errors},
        )
        return _respond(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": errors},
        )

    @app.exception_handler(QuizEngineException)
    async def domain_exception_handler(request: Request, exc: QuizEngineException) -> JSONResponse:
        """Map domain exceptions; conflicts carry current_state_version in details."""
        status_code, error_code = map_domain_exception(exc)
        logger.warning(
            f"{exc.__class__.__name__} on {request.url.path}: {exc.message}",
            extra={"request_id": _request_id(request), "status_code": status_code},
        )
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return _respond(request, status_code, error_code, exc.message, exc.details, headers)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything unmapped, durable store failures included, is a 500."""
        debug = get_settings().is_development
        extra: dict[str, Any] = {"request_id": _request_id(request), "path": request.url.path}
        if debug:
            extra["traceback"] = traceback.format_exc()
        logger.error(f"Unhandled {type(exc).__name__}", extra=extra)

        # Internal detail stays out of responses outside development
        message = str(exc) if debug else "Internal server error"
        return _respond(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message)
