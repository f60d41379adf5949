"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept limiter errors
(and unexpected ones) and return consistent JSON responses with proper HTTP
status codes and traceability.

Design:
- StoreFailureError -> 503 (state unknown, neither allow nor deny)
- InvalidConfigError -> 500, other AppError (e.g. InvalidKeyError) -> 400
- Unexpected Exception -> generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ratekeeper.core.errors import (
    AppError,
    InvalidConfigError,
    StoreFailureError,
)
from ratekeeper.core.logging import get_request_id

logger = logging.getLogger(__name__)


def status_code_for(exc: AppError) -> int:
    """Map an application error to its HTTP status code."""

    if isinstance(exc, StoreFailureError):
        return 503
    if isinstance(exc, InvalidConfigError):
        return 500
    return 400


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build the JSON error body shared by handlers and middleware."""

    error_content: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        error_content["details"] = details

    return JSONResponse(status_code=status_code, content={"error": error_content})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle application errors with consistent JSON format.

    Store failures are reported as 503 with code ``store_unavailable`` so
    clients can tell "limit state unknown" apart from a 429 denial.
    """

    status_code = status_code_for(exc)

    if isinstance(exc, StoreFailureError):
        logger.error(
            "rate_limit.store_failure",
            extra={
                "operation": exc.operation,
                "backend": (exc.details or {}).get("backend"),
                "error_code": exc.code,
            },
        )
        return error_response(
            status_code,
            "store_unavailable",
            "Rate limit state is temporarily unavailable.",
            {"operation": exc.operation},
        )

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
        },
    )
    return error_response(status_code, exc.code, exc.message, dict(exc.details or {}))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (no implementation details leaked)."""

    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return error_response(
        500,
        "internal_server_error",
        "An unexpected error occurred. Please try again later.",
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""

    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
