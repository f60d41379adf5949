"""Sliding window rate algorithm (two-window approximation).

Counts cost in fixed windows aligned to ``window_ms`` and approximates a true
sliding window by adding the previous window's count, weighted by how much of
it still overlaps the sliding interval ending at ``now``.

Notes:
- Cost is always recorded, even when the request is denied, so repeated
  over-limit attempts keep counting against the caller.
- ``retry_after_ms`` is the time until the current window closes. The real
  earliest retry can be sooner once the previous window's weight has decayed.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Mapping

from ratekeeper.adapters.rate_limit.base import (
    AbstractRateAlgorithm,
    AlgorithmOutcome,
    PartialLimitResult,
    require_number,
    require_positive_int,
)
from ratekeeper.core.errors import store_failure

MIN_STATE_TTL_MS = 1000


@dataclass(frozen=True)
class SlidingWindowState:
    """Counters for the current window and the window before it."""

    window_start: int
    count: float
    prev_start: int
    prev_count: float

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SlidingWindowState":
        try:
            state = cls(
                window_start=int(require_number(payload, "window_start")),
                count=require_number(payload, "count"),
                prev_start=int(require_number(payload, "prev_start")),
                prev_count=require_number(payload, "prev_count"),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise store_failure(
                "load",
                f"Invalid sliding window state: {exc}",
                malformed=True,
            ) from exc

        if state.count < 0 or state.prev_count < 0:
            raise store_failure(
                "load",
                "Invalid sliding window state: negative counter",
                malformed=True,
            )
        return state

    def to_payload(self) -> dict[str, Any]:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SlidingWindowAlgorithm(AbstractRateAlgorithm):
    """Approximate sliding window limiter.

    Args:
        limit: Maximum units per window.
        window_ms: Window length in milliseconds.

    Raises:
        InvalidConfigError: If limit or window_ms are not positive integers.
    """

    name = "sliding_window"

    def __init__(self, *, limit: int, window_ms: int) -> None:
        self._limit = require_positive_int(limit, "limit", "invalid_limit")
        self._window_ms = require_positive_int(window_ms, "window_ms", "invalid_window")
        self.policy = f"{self._limit};w={_round_half_up(self._window_ms / 1000)}"

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"SlidingWindowAlgorithm(limit={self._limit}, window_ms={self._window_ms})"

    def _window_start_for(self, at: int) -> int:
        return (at // self._window_ms) * self._window_ms

    def _advance(self, previous: SlidingWindowState | None, at: int) -> SlidingWindowState:
        """Roll the stored counters forward to the window containing ``at``."""

        cur_start = self._window_start_for(at)
        prev_start = cur_start - self._window_ms

        if previous is None:
            return SlidingWindowState(
                window_start=cur_start, count=0, prev_start=prev_start, prev_count=0
            )

        if previous.window_start == cur_start:
            return previous

        # Only the immediately preceding window carries weight.
        contiguous = previous.window_start == prev_start
        return SlidingWindowState(
            window_start=cur_start,
            count=0,
            prev_start=prev_start,
            prev_count=previous.count if contiguous else 0,
        )

    def compute(
        self,
        state: Mapping[str, Any] | None,
        cost: int,
        now: int,
    ) -> AlgorithmOutcome:
        previous = SlidingWindowState.from_payload(state) if state is not None else None

        # A clock that went backwards is evaluated inside the stored window,
        # at its start, so earlier consumption is never undone.
        at = now
        if previous is not None and now < previous.window_start:
            at = previous.window_start

        current = self._advance(previous, at)
        current = SlidingWindowState(
            window_start=current.window_start,
            count=current.count + cost,
            prev_start=current.prev_start,
            prev_count=current.prev_count,
        )

        window_end = current.window_start + self._window_ms
        weight = (self._window_ms - (at - current.window_start)) / self._window_ms
        carried = 0.0
        if current.prev_start == current.window_start - self._window_ms:
            carried = current.prev_count * weight
        effective = current.count + carried

        allowed = effective <= self._limit
        remaining = max(0, math.floor(self._limit - effective))
        reset = math.ceil(window_end / 1000)

        retry_after_ms = None
        if not allowed:
            retry_after_ms = max(0, window_end - now)

        ttl_ms = max(MIN_STATE_TTL_MS, (current.window_start + 2 * self._window_ms) - now)

        return AlgorithmOutcome(
            state=current.to_payload(),
            result=PartialLimitResult(
                allowed=allowed,
                limit=self._limit,
                remaining=remaining,
                reset=reset,
                retry_after_ms=retry_after_ms,
                policy=self.policy,
            ),
            ttl_ms=int(ttl_ms),
        )
