"""Rate algorithm interfaces.

The limiter depends on this abstraction (not on a concrete algorithm) so the
windowed and token bucket strategies can be swapped by configuration.

An algorithm is a pure decision function: given the previous state payload
(or ``None`` for a key seen for the first time), a non-negative cost and the
current time in epoch milliseconds, it returns the next state payload, the
decision and how long the store should keep the state around. Algorithms
never read the clock and never perform I/O.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Real
from typing import Any, Mapping

from ratekeeper.adapters.store.base import StatePayload
from ratekeeper.core.errors import InvalidConfigError


@dataclass(frozen=True)
class PartialLimitResult:
    """Decision produced by an algorithm, before the limiter stamps ``now``.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Configured limit (window limit or bucket capacity).
        remaining: Whole units still available (never negative).
        reset: UNIX epoch seconds when a fresh decision is expected.
        retry_after_ms: Milliseconds until more cost is admissible (denials only).
        policy: Quota descriptor, e.g. ``"100;w=60"``.
    """

    allowed: bool
    limit: int
    remaining: int
    reset: int
    retry_after_ms: int | None = None
    policy: str | None = None


@dataclass(frozen=True)
class LimitResult:
    """Final decision returned to limiter callers.

    Same fields as PartialLimitResult plus ``now``, the epoch milliseconds
    at which the decision was evaluated.
    """

    allowed: bool
    limit: int
    remaining: int
    reset: int
    now: int
    retry_after_ms: int | None = None
    policy: str | None = None

    @classmethod
    def from_partial(cls, partial: PartialLimitResult, *, now: int) -> "LimitResult":
        return cls(
            allowed=partial.allowed,
            limit=partial.limit,
            remaining=partial.remaining,
            reset=partial.reset,
            now=now,
            retry_after_ms=partial.retry_after_ms,
            policy=partial.policy,
        )


@dataclass(frozen=True)
class AlgorithmOutcome:
    """Everything ``compute`` hands back to the limiter."""

    state: StatePayload
    result: PartialLimitResult
    ttl_ms: int


def require_number(payload: Mapping[str, Any], field: str) -> float:
    """Read a numeric field from a state payload.

    Args:
        payload: Decoded state payload.
        field: Field name.

    Returns:
        The field value.

    Raises:
        KeyError: If the field is missing.
        TypeError: If the value is not an int/float (bools rejected).
        ValueError: If the value is NaN or infinite.
    """

    value = payload[field]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{field} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise ValueError(f"{field} must be finite")
    return value


def require_positive_int(value: Any, field: str, code: str) -> int:
    """Validate a size parameter (limit, window, capacity) at construction.

    Whole-valued floats such as ``10.0`` are accepted; fractions, NaN,
    infinities, bools and non-numbers are not.

    Raises:
        InvalidConfigError: If ``value`` is not a positive whole number.
    """

    valid = (
        not isinstance(value, bool)
        and isinstance(value, Real)
        and math.isfinite(value)
        and value == math.floor(value)
        and value > 0
    )
    if not valid:
        raise InvalidConfigError(
            code=code,
            message=f"{field} must be a positive integer",
            details={"field": field, "value": value},
        )
    return int(value)


class AbstractRateAlgorithm(ABC):
    """Interface for rate limiting algorithms."""

    name: str
    policy: str

    @abstractmethod
    def compute(
        self,
        state: Mapping[str, Any] | None,
        cost: int,
        now: int,
    ) -> AlgorithmOutcome:
        """Advance the state for one request.

        Args:
            state: Previous state payload, or None when the key has no state.
            cost: Units the request consumes (>= 0).
            now: Current time in epoch milliseconds.

        Returns:
            AlgorithmOutcome with the next state, the decision and the state
            lifetime in milliseconds (> 0).

        Raises:
            MalformedStateError: If ``state`` cannot be interpreted.
        """
        raise NotImplementedError
