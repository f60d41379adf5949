"""Rate limiting algorithms.

Each algorithm is a pure decision function over an opaque state payload, so
the limiter can pair any algorithm with any state store.
"""

from ratekeeper.adapters.rate_limit.base import (
    AbstractRateAlgorithm,
    AlgorithmOutcome,
    LimitResult,
    PartialLimitResult,
)
from ratekeeper.adapters.rate_limit.sliding_window import SlidingWindowAlgorithm, SlidingWindowState
from ratekeeper.adapters.rate_limit.token_bucket import TokenBucketAlgorithm, TokenBucketState

__all__ = [
    "AbstractRateAlgorithm",
    "AlgorithmOutcome",
    "LimitResult",
    "PartialLimitResult",
    "SlidingWindowAlgorithm",
    "SlidingWindowState",
    "TokenBucketAlgorithm",
    "TokenBucketState",
]
