"""Factory functions building algorithms, stores and limiters from settings."""

from __future__ import annotations

from ratekeeper.adapters.rate_limit.base import AbstractRateAlgorithm
from ratekeeper.adapters.rate_limit.sliding_window import SlidingWindowAlgorithm
from ratekeeper.adapters.rate_limit.token_bucket import TokenBucketAlgorithm
from ratekeeper.adapters.store.base import AbstractStateStore
from ratekeeper.adapters.store.in_memory import InMemoryStateStore
from ratekeeper.adapters.store.redis_store import RedisStateStore
from ratekeeper.core.config import RateLimitSettings, settings
from ratekeeper.core.errors import InvalidConfigError
from ratekeeper.services.limiter import KeyFunction, RateLimiter


def create_algorithm(rate_limit_settings: RateLimitSettings | None = None) -> AbstractRateAlgorithm:
    """Instantiate the configured rate algorithm.

    Reads configuration from ratekeeper.core.config.settings unless explicit
    settings are passed.

    Returns:
        AbstractRateAlgorithm: Configured algorithm instance.

    Raises:
        InvalidConfigError: If the algorithm name or its parameters are invalid.
    """
    cfg = rate_limit_settings or settings.rate_limit
    algorithm = cfg.algorithm.lower()

    if algorithm == "sliding_window":
        return SlidingWindowAlgorithm(limit=cfg.limit, window_ms=cfg.window_ms)

    if algorithm == "token_bucket":
        return TokenBucketAlgorithm(
            capacity=cfg.capacity,
            refill_rate_per_sec=cfg.refill_rate_per_sec,
        )

    raise InvalidConfigError(
        code="unknown_algorithm",
        message=(
            f"Unknown rate limit algorithm: '{algorithm}'. "
            "Supported algorithms: sliding_window, token_bucket"
        ),
    )


def create_store(rate_limit_settings: RateLimitSettings | None = None) -> AbstractStateStore:
    """Instantiate the configured state store.

    Returns:
        AbstractStateStore: Configured store instance.

    Raises:
        InvalidConfigError: If the store name is unknown.
    """
    cfg = rate_limit_settings or settings.rate_limit
    backend = cfg.store.lower()

    if backend == "memory":
        return InMemoryStateStore()

    if backend == "redis":
        return RedisStateStore(url=cfg.redis_url, prefix=cfg.redis_prefix)

    raise InvalidConfigError(
        code="unknown_store",
        message=f"Unknown rate limit store: '{backend}'. Supported stores: memory, redis",
    )


def create_rate_limiter(
    key: KeyFunction,
    rate_limit_settings: RateLimitSettings | None = None,
) -> RateLimiter:
    """Build a RateLimiter wired from settings.

    Args:
        key: Key function resolving a request context to a caller key.
        rate_limit_settings: Optional explicit settings (defaults to global).

    Returns:
        RateLimiter: Limiter using the configured algorithm, store and namespace.
    """
    cfg = rate_limit_settings or settings.rate_limit
    return RateLimiter(
        store=create_store(cfg),
        algorithm=create_algorithm(cfg),
        key=key,
        namespace=cfg.namespace,
    )
