"""Token bucket rate algorithm.

A bucket holds up to ``capacity`` tokens and refills continuously at
``refill_rate_per_sec``. A request is admitted when the bucket holds at least
its cost; denied requests consume nothing.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from numbers import Real
from typing import Any, Mapping

from ratekeeper.adapters.rate_limit.base import (
    AbstractRateAlgorithm,
    AlgorithmOutcome,
    PartialLimitResult,
    require_number,
    require_positive_int,
)
from ratekeeper.core.errors import InvalidConfigError, store_failure

MIN_STATE_TTL_MS = 1000


@dataclass(frozen=True)
class TokenBucketState:
    """Token count and the epoch milliseconds of the last refill."""

    tokens: float
    last_refill_at: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TokenBucketState":
        try:
            state = cls(
                tokens=require_number(payload, "tokens"),
                last_refill_at=int(require_number(payload, "last_refill_at")),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise store_failure(
                "load",
                f"Invalid token bucket state: {exc}",
                malformed=True,
            ) from exc

        if state.tokens < 0:
            raise store_failure(
                "load",
                "Invalid token bucket state: negative token count",
                malformed=True,
            )
        return state

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


class TokenBucketAlgorithm(AbstractRateAlgorithm):
    """Continuously refilling token bucket.

    Args:
        capacity: Maximum tokens (and burst size).
        refill_rate_per_sec: Tokens added per second.

    Raises:
        InvalidConfigError: If capacity or refill_rate_per_sec are not positive.
    """

    name = "token_bucket"

    def __init__(self, *, capacity: int, refill_rate_per_sec: float) -> None:
        self._capacity = require_positive_int(capacity, "capacity", "invalid_capacity")
        rate = refill_rate_per_sec
        numeric = isinstance(rate, Real) and not isinstance(rate, bool)
        if not (numeric and math.isfinite(rate) and rate > 0):
            raise InvalidConfigError(
                code="invalid_refill_rate",
                message="refill_rate_per_sec must be > 0",
                details={"field": "refill_rate_per_sec", "value": refill_rate_per_sec},
            )

        self._refill_rate_per_sec = float(refill_rate_per_sec)
        self.policy = f"{self._capacity};w=1;burst={self._capacity}"

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def refill_rate_per_sec(self) -> float:
        return self._refill_rate_per_sec

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"TokenBucketAlgorithm(capacity={self._capacity}, "
            f"refill_rate_per_sec={self._refill_rate_per_sec})"
        )

    def _ms_to_accumulate(self, tokens: float) -> int:
        # tokens * 1000 / rate keeps whole-number rates exact
        return math.ceil(tokens * 1000 / self._refill_rate_per_sec)

    def compute(
        self,
        state: Mapping[str, Any] | None,
        cost: int,
        now: int,
    ) -> AlgorithmOutcome:
        if state is None:
            bucket = TokenBucketState(tokens=self._capacity, last_refill_at=now)
        else:
            bucket = TokenBucketState.from_payload(state)

        tokens = min(self._capacity, bucket.tokens)
        last_refill_at = bucket.last_refill_at

        # No refill when the clock stood still or went backwards.
        if now > last_refill_at:
            elapsed_ms = now - last_refill_at
            tokens = min(self._capacity, tokens + elapsed_ms * self._refill_rate_per_sec / 1000)
            last_refill_at = now

        retry_after_ms = None
        if tokens >= cost:
            tokens -= cost
            allowed = True
        else:
            allowed = False
            retry_after_ms = self._ms_to_accumulate(cost - tokens)

        remaining = max(0, math.floor(tokens))
        reset = math.ceil((now + 1000) / 1000)
        ttl_ms = max(MIN_STATE_TTL_MS, self._ms_to_accumulate(self._capacity) + 1000)

        return AlgorithmOutcome(
            state=TokenBucketState(tokens=tokens, last_refill_at=last_refill_at).to_payload(),
            result=PartialLimitResult(
                allowed=allowed,
                limit=self._capacity,
                remaining=remaining,
                reset=reset,
                retry_after_ms=retry_after_ms,
                policy=self.policy,
            ),
            ttl_ms=int(ttl_ms),
        )
