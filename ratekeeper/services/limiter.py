"""Rate limiter service orchestrating key derivation, state and algorithms.

For every request the limiter:
- Resolves the caller to a fully-qualified key (``namespace:key``)
- Normalizes the request cost
- Loads the previous state, lets the algorithm compute the next one
- Persists the new state (allowed or denied) and returns the decision

Concurrency:
The load -> compute -> save sequence is not atomic across concurrent callers
sharing a store. Two overlapping decisions for the same key can both read the
same state and the later save wins, so under concurrent load on one key the
limiter may admit slightly more than configured. No locking is attempted here.

Store failures, key function errors and cost function errors propagate to the
caller unchanged; there are no retries.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Callable

from ratekeeper.adapters.rate_limit.base import AbstractRateAlgorithm, LimitResult
from ratekeeper.adapters.store.base import AbstractStateStore, supports_reset
from ratekeeper.core.errors import InvalidConfigError, InvalidKeyError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True)
class LimitContext:
    """Request attributes available to key and cost functions."""

    ip: str | None = None
    user_id: str | None = None
    api_key: str | None = None
    path: str | None = None
    method: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


KeyFunction = Callable[[LimitContext], str]
CostFunction = Callable[[LimitContext], Any]


def _default_cost(context: LimitContext) -> int:
    return 1


def normalize_cost(raw_cost: Any) -> int:
    """Turn a cost function's return value into a whole, non-negative cost.

    Non-numeric or non-finite values count as one unit, fractions are floored
    and negative values become zero.

    Examples:
        >>> normalize_cost(2.7)
        2
        >>> normalize_cost(-5)
        0
        >>> normalize_cost("abc")
        1
    """

    if isinstance(raw_cost, bool) or not isinstance(raw_cost, Real):
        return 1
    if not math.isfinite(raw_cost):
        return 1
    return max(0, math.floor(raw_cost))


def hash_key(key: str) -> str:
    """Hash a limiter key for logging without exposing identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class RateLimiter:
    """Admission control over a state store and a rate algorithm.

    Configuration is fixed at construction time.

    Args:
        store: State store holding one entry per fully-qualified key.
        algorithm: Rate algorithm deciding each request.
        key: Deterministic function mapping a context to a non-empty key.
        namespace: Prefix isolating this limiter's keys (default "default").
        cost: Function returning the units a request consumes (default 1).
        clock: Time source function returning UNIX time in seconds.
    """

    def __init__(
        self,
        *,
        store: AbstractStateStore,
        algorithm: AbstractRateAlgorithm,
        key: KeyFunction,
        namespace: str = DEFAULT_NAMESPACE,
        cost: CostFunction | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not namespace:
            raise InvalidConfigError(
                code="invalid_namespace",
                message="namespace must be a non-empty string",
                details={"field": "namespace", "value": namespace},
            )

        self._store = store
        self._algorithm = algorithm
        self._key_fn = key
        self._namespace = namespace
        self._cost_fn = cost or _default_cost
        self._clock = clock

    @property
    def store(self) -> AbstractStateStore:
        return self._store

    @property
    def algorithm(self) -> AbstractRateAlgorithm:
        return self._algorithm

    @property
    def namespace(self) -> str:
        return self._namespace

    def full_key(self, key: str) -> str:
        """Qualify a caller key with this limiter's namespace.

        Raises:
            InvalidKeyError: If the key is empty.
        """

        if not key:
            raise InvalidKeyError(
                code="empty_limiter_key",
                message="key function must return a non-empty string",
            )
        return f"{self._namespace}:{key}"

    async def decide(self, context: LimitContext) -> LimitResult:
        """Evaluate one request and persist the updated state.

        Args:
            context: Request attributes for the key and cost functions.

        Returns:
            LimitResult describing whether the request is allowed.

        Raises:
            InvalidKeyError: If the key function returns an empty key.
            StoreFailureError: If the store fails or holds unreadable state.
        """

        now = int(self._clock() * 1000)
        full_key = self.full_key(self._key_fn(context))
        cost = normalize_cost(self._cost_fn(context))

        state = await self._store.load(full_key)
        outcome = self._algorithm.compute(state, cost, now)
        await self._store.save(full_key, outcome.state, outcome.ttl_ms)

        result = LimitResult.from_partial(outcome.result, now=now)

        log_extra = {
            "key_hash": hash_key(full_key),
            "algorithm": self._algorithm.name,
            "cost": cost,
            "limit": result.limit,
            "remaining": result.remaining,
        }
        if result.allowed:
            logger.debug("rate_limit.allowed", extra=log_extra)
        else:
            logger.warning(
                "rate_limit.denied",
                extra={**log_extra, "retry_after_ms": result.retry_after_ms},
            )

        return result

    @property
    def supports_reset(self) -> bool:
        return supports_reset(self._store)

    async def reset(self, key: str) -> None:
        """Drop the stored state for a caller key (not namespace-qualified).

        Raises:
            NotImplementedError: If the store has no reset capability.
            StoreFailureError: If the store fails.
        """

        if not self.supports_reset:
            raise NotImplementedError(f"{type(self._store).__name__} does not support reset")
        await self._store.reset(self.full_key(key))  # type: ignore[attr-defined]
