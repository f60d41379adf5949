"""Ratekeeper: admission control with pluggable algorithms and state stores."""

from ratekeeper.adapters.rate_limit import (
    AbstractRateAlgorithm,
    LimitResult,
    SlidingWindowAlgorithm,
    TokenBucketAlgorithm,
)
from ratekeeper.adapters.store import (
    AbstractStateStore,
    InMemoryStateStore,
    RedisStateStore,
    supports_reset,
)
from ratekeeper.core.errors import (
    AppError,
    InvalidConfigError,
    InvalidKeyError,
    MalformedStateError,
    StoreFailureError,
)
from ratekeeper.core.headers import HeaderOptions, apply_headers, build_headers
from ratekeeper.core.middleware import rate_limit_middleware
from ratekeeper.services.limiter import LimitContext, RateLimiter, normalize_cost

__all__ = [
    "AbstractRateAlgorithm",
    "AbstractStateStore",
    "AppError",
    "HeaderOptions",
    "InMemoryStateStore",
    "InvalidConfigError",
    "InvalidKeyError",
    "LimitContext",
    "LimitResult",
    "MalformedStateError",
    "RateLimiter",
    "RedisStateStore",
    "SlidingWindowAlgorithm",
    "StoreFailureError",
    "TokenBucketAlgorithm",
    "apply_headers",
    "build_headers",
    "normalize_cost",
    "rate_limit_middleware",
    "supports_reset",
]
