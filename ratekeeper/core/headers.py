"""Rate limit response headers.

Turns a LimitResult into HTTP header name/value pairs. Header families:
- standard: ``RateLimit-Limit``, ``RateLimit-Remaining``, ``RateLimit-Reset``
- legacy: ``X-RateLimit-Limit``, ``X-RateLimit-Remaining``, ``X-RateLimit-Reset``
- policy: ``RateLimit-Policy`` (only when the decision carries a policy)

``Retry-After`` (whole seconds, rounded up) accompanies either enabled
family whenever the decision has a retry hint.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from ratekeeper.adapters.rate_limit.base import LimitResult
from ratekeeper.core.config import RateLimitSettings


@dataclass(frozen=True)
class HeaderOptions:
    """Which header families to emit."""

    standard: bool = True
    legacy: bool = False
    policy: bool = False

    @classmethod
    def from_settings(cls, rate_limit_settings: RateLimitSettings) -> "HeaderOptions":
        return cls(
            standard=rate_limit_settings.headers_standard,
            legacy=rate_limit_settings.headers_legacy,
            policy=rate_limit_settings.headers_policy,
        )


def retry_after_seconds(result: LimitResult) -> int | None:
    """Convert the decision's retry hint from milliseconds to whole seconds."""

    if result.retry_after_ms is None:
        return None
    return max(0, math.ceil(result.retry_after_ms / 1000))


def build_headers(result: LimitResult, options: HeaderOptions | None = None) -> dict[str, str]:
    """Build response headers for a decision.

    Args:
        result: Limiter decision.
        options: Header families to emit (defaults to standard only).

    Returns:
        Mapping of header names to string values (empty when all disabled).
    """

    opts = options or HeaderOptions()
    headers: dict[str, str] = {}
    retry_after = retry_after_seconds(result)

    families = []
    if opts.standard:
        families.append("RateLimit")
    if opts.legacy:
        families.append("X-RateLimit")

    for prefix in families:
        headers[f"{prefix}-Limit"] = str(result.limit)
        headers[f"{prefix}-Remaining"] = str(result.remaining)
        headers[f"{prefix}-Reset"] = str(result.reset)
        if retry_after is not None:
            headers["Retry-After"] = str(retry_after)

    if opts.policy and result.policy:
        headers["RateLimit-Policy"] = result.policy

    return headers


def apply_headers(response: Any, result: LimitResult, options: HeaderOptions | None = None) -> Any:
    """Write decision headers onto a response exposing a ``headers`` mapping.

    Returns:
        The same response, for chaining.
    """

    for name, value in build_headers(result, options).items():
        response.headers[name] = value
    return response
