"""Rate limiters deciding how long a failed change event waits before retry.

ItemExponentialFailureRateLimiter -- per-item ``base * 2**failures`` delay.
BucketRateLimiter                 -- overall token bucket across all items.
MaxOfRateLimiter                  -- the longest delay of several limiters.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Hashable

_BASE_DELAY_S = 0.005
_MAX_DELAY_S = 1000.0
_BUCKET_QPS = 10.0
_BUCKET_BURST = 100


class RateLimiter(ABC):
    """Tracks failures per item identity and turns them into delays."""

    @abstractmethod
    def when(self, item: Hashable) -> float:
        """Record a failure for *item* and return the seconds to wait."""

    @abstractmethod
    def forget(self, item: Hashable) -> None:
        """Stop tracking *item*; its next failure starts from scratch."""

    @abstractmethod
    def num_requeues(self, item: Hashable) -> int:
        """Failures recorded for *item* since it was last forgotten."""


class ItemExponentialFailureRateLimiter(RateLimiter):
    """Doubles the delay on every consecutive failure of the same item."""

    def __init__(self, base_delay: float = _BASE_DELAY_S, max_delay: float = _MAX_DELAY_S) -> None:
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._failures: dict[Hashable, int] = {}

    def when(self, item: Hashable) -> float:
        exp = self._failures.get(item, 0)
        self._failures[item] = exp + 1
        # Cap the exponent first so huge failure counts cannot overflow.
        if exp > 64:
            return self._max_delay
        return min(self._base_delay * (2**exp), self._max_delay)

    def forget(self, item: Hashable) -> None:
        self._failures.pop(item, None)

    def num_requeues(self, item: Hashable) -> int:
        return self._failures.get(item, 0)


class BucketRateLimiter(RateLimiter):
    """Token bucket shared by every item; smooths retry storms."""

    def __init__(self, qps: float = _BUCKET_QPS, burst: int = _BUCKET_BURST) -> None:
        self._qps = qps
        self._burst = burst
        self._tokens = float(burst)
        self._last = time.monotonic()

    def when(self, item: Hashable) -> float:
        now = time.monotonic()
        self._tokens = min(float(self._burst), self._tokens + (now - self._last) * self._qps)
        self._last = now
        self._tokens -= 1.0
        if self._tokens >= 0:
            return 0.0
        return -self._tokens / self._qps

    def forget(self, item: Hashable) -> None:
        return None

    def num_requeues(self, item: Hashable) -> int:
        return 0


class MaxOfRateLimiter(RateLimiter):
    """Waits for the longest delay any wrapped limiter asks for."""

    def __init__(self, *limiters: RateLimiter) -> None:
        if not limiters:
            raise ValueError("MaxOfRateLimiter needs at least one limiter")
        self._limiters = limiters

    def when(self, item: Hashable) -> float:
        return max(limiter.when(item) for limiter in self._limiters)

    def forget(self, item: Hashable) -> None:
        for limiter in self._limiters:
            limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return max(limiter.num_requeues(item) for limiter in self._limiters)


def default_controller_rate_limiter() -> RateLimiter:
    """Per-item exponential backoff combined with an overall 10 qps bucket."""
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(),
        BucketRateLimiter(),
    )
