"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → status code looked up by type (400, 403, 429, 502, 500)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for tracing
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kagi_relay.core.errors import (
    AppError,
    ConfigurationError,
    DirectMessageNotAllowedError,
    EvaluationError,
    KagiAppError,
    QuotaExceededAppError,
    StorageError,
    ValidationAppError,
)
from kagi_relay.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Most specific type first; the first isinstance match wins
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (ValidationAppError, 400),
    (DirectMessageNotAllowedError, 403),
    (QuotaExceededAppError, 429),
    (KagiAppError, 502),
    (ConfigurationError, 500),
    (StorageError, 500),
    (EvaluationError, 500),
)


def status_code_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code (400 when unmapped)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message (safe to relay to chat users)
    - error.request_id: For tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = status_code_for(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure for investigation and returns a generic message, the
    same one the bot shows users when a command crashes.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": (
                    "There was an error executing this command! "
                    "The error has been logged for investigation."
                ),
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
