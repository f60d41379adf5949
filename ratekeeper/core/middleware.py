"""HTTP middleware for request correlation and rate limiting.

Request ID middleware:
- Accepts incoming X-Request-ID header or generates a UUID
- Stores request_id in contextvars for access throughout the request lifecycle
- Injects request_id and total duration into response headers

Rate limit middleware:
- Evaluates every request against a RateLimiter before it reaches a route
- Allowed requests continue and get the rate limit headers on their response
- Denied requests get ``429 Too Many Requests`` (or a caller-supplied response)
- Store failures answer 503 (or pass through with fail_open); other limiter
  errors, such as an empty key, answer with their mapped status

Usage:
    app.middleware("http")(rate_limit_middleware(limiter))
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import inspect
import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse

from ratekeeper.adapters.rate_limit.base import LimitResult
from ratekeeper.core.config import settings
from ratekeeper.core.errors import AppError, StoreFailureError
from ratekeeper.core.exception_handlers import error_response, status_code_for
from ratekeeper.core.headers import HeaderOptions, apply_headers
from ratekeeper.core.logging import clear_request_id, set_request_id
from ratekeeper.core.rate_limit import DENIED_MESSAGE, context_from_request
from ratekeeper.services.limiter import LimitContext, RateLimiter

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]
DeniedHandler = Callable[[Request, LimitResult], "Response | Awaitable[Response]"]


async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides the configured request id header, that value is
    used. Otherwise, a new UUID is generated.

    Side Effects:
        - Sets request_id in contextvars (accessible via get_request_id())
        - Clears request_id from contextvars after request completes
        - Adds the request id header and X-Request-Duration-ms to the response
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def rate_limit_middleware(
    limiter: RateLimiter,
    *,
    headers: HeaderOptions | None = None,
    get_context: Callable[[Request], LimitContext] | None = None,
    on_denied: DeniedHandler | None = None,
    fail_open: bool = False,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Build an HTTP middleware enforcing ``limiter`` on every request.

    Args:
        limiter: Limiter deciding each request.
        headers: Header families to emit (defaults to standard only).
        get_context: Builds the limiter context (defaults to client IP, path,
            method and X-API-Key).
        on_denied: Receives the request and the full decision and returns the
            response to send instead of the default 429.
        fail_open: Let requests through when the state store fails instead of
            answering 503.

    Returns:
        Middleware function for ``app.middleware("http")``.
    """

    header_options = headers or HeaderOptions()
    build_context = get_context or context_from_request

    async def middleware(request: Request, call_next: CallNext) -> Response:
        try:
            result = await limiter.decide(build_context(request))
        except StoreFailureError as exc:
            log_extra = {
                "operation": exc.operation,
                "backend": (exc.details or {}).get("backend"),
                "error_code": exc.code,
            }
            if fail_open:
                logger.warning("rate_limit.fail_open", extra=log_extra)
                return await call_next(request)
            logger.error("rate_limit.store_failure", extra=log_extra)
            return error_response(
                503,
                "store_unavailable",
                "Rate limit state is temporarily unavailable.",
                {"operation": exc.operation},
            )
        except AppError as exc:
            # Exception handlers sit inside this middleware and never see it.
            status_code = status_code_for(exc)
            logger.warning(
                "app_error_handled",
                extra={"error_code": exc.code, "status_code": status_code},
            )
            return error_response(status_code, exc.code, exc.message, dict(exc.details or {}))

        if result.allowed:
            response = await call_next(request)
            return apply_headers(response, result, header_options)

        if on_denied is not None:
            denied = on_denied(request, result)
            if inspect.isawaitable(denied):
                denied = await denied
        else:
            denied = PlainTextResponse(DENIED_MESSAGE, status_code=429)

        return apply_headers(denied, result, header_options)

    return middleware
