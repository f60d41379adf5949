"""Rate limiting dependency for FastAPI routes.

This module wires the limiter into the HTTP layer at route level.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: algorithm and store are chosen by settings.
- Unopinionated core: whether a store outage lets requests through is decided
  here (``RATE_LIMIT_FAIL_OPEN``), never inside the limiter.

Default keying:
- Per API key when the ``X-API-Key`` header is present.
- Otherwise per client IP.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, Response, status

from ratekeeper.adapters.factory import create_rate_limiter
from ratekeeper.core.config import settings
from ratekeeper.core.errors import StoreFailureError
from ratekeeper.core.headers import HeaderOptions, apply_headers, build_headers
from ratekeeper.services.limiter import LimitContext, RateLimiter

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
DENIED_MESSAGE = "Too Many Requests"

_limiter: RateLimiter | None = None
_limiter_config: dict | None = None


def context_from_request(request: Request) -> LimitContext:
    """Extract the limiter context from an incoming request."""

    return LimitContext(
        ip=request.client.host if request.client else None,
        user_id=getattr(request.state, "user_id", None),
        api_key=request.headers.get(API_KEY_HEADER),
        path=request.url.path,
        method=request.method,
    )


def default_key(context: LimitContext) -> str:
    """Key requests by API key, falling back to client IP."""

    if context.api_key:
        return f"api_key:{context.api_key}"
    return f"ip:{context.ip or 'unknown'}"


def get_rate_limiter() -> RateLimiter:
    """Return a process-wide limiter instance.

    The instance is cached in-module to preserve state across requests.
    If configuration changes (primarily in tests), the limiter is rebuilt.
    """

    global _limiter, _limiter_config

    config = settings.rate_limit.model_dump()
    if _limiter is None or _limiter_config != config:
        _limiter = create_rate_limiter(default_key, settings.rate_limit)
        _limiter_config = config

    return _limiter


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, evaluates the requester's budget. Allowed requests get the
    rate limit headers on their response; denied requests get HTTP 429.

    Raises:
        HTTPException: 429 Too Many Requests when the limit is exceeded.
        StoreFailureError: When the store fails and fail-open is disabled.
    """

    cfg = settings.rate_limit
    if not cfg.enabled:
        return

    limiter = get_rate_limiter()
    header_options = HeaderOptions.from_settings(cfg)

    try:
        result = await limiter.decide(context_from_request(request))
    except StoreFailureError as exc:
        if not cfg.fail_open:
            raise
        logger.warning(
            "rate_limit.fail_open",
            extra={"operation": exc.operation, "error_code": exc.code},
        )
        return

    if result.allowed:
        apply_headers(response, result, header_options)
        return

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=DENIED_MESSAGE,
        headers=build_headers(result, header_options) or None,
    )
