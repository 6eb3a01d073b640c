"""In-memory fixed-window counting store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Simulates store TTL with an explicit expiry timestamp per key; a counter
  read past its expiry is treated as absent.
- Thread-safe: the whole increment/expire/ttl sequence runs under one lock,
  which plays the role of the shared store's atomicity.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from quotagate.adapters.rate_limit.base import AbstractCounterStore, CounterResult


@dataclass
class _Counter:
    count: int
    expires_at: float | None


class InMemoryCounterStore(AbstractCounterStore):
    """Counting store keeping fixed-window counters in a local dict.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits. Use the Redis store for shared limits.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        purge_threshold: int = 10_000,
        purge_interval: float = 1.0,
    ) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source used for counter expiry (UNIX seconds).
            purge_threshold: Number of tracked keys above which expired
                counters are swept on the next increment.
            purge_interval: Minimum seconds between two sweeps.

        Raises:
            ValueError: If purge_threshold or purge_interval is invalid.
        """
        if purge_threshold < 1:
            raise ValueError("purge_threshold must be >= 1")
        if purge_interval < 0:
            raise ValueError("purge_interval must be >= 0")

        self._clock = clock
        self._purge_threshold = purge_threshold
        self._purge_interval = purge_interval
        self._next_purge_at = float("-inf")
        self._lock = threading.RLock()
        self._counters: dict[str, _Counter] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)

    def _is_expired(self, counter: _Counter, current: float) -> bool:
        return counter.expires_at is not None and counter.expires_at <= current

    def _purge_expired(self, current: float) -> None:
        expired = [k for k, c in self._counters.items() if self._is_expired(c, current)]
        for key in expired:
            del self._counters[key]
        self._next_purge_at = current + self._purge_interval

    def _ttl(self, counter: _Counter, current: float) -> int:
        """Remaining lifetime in whole seconds, -1 when no expiry is set."""
        if counter.expires_at is None:
            return -1
        return max(0, int(math.ceil(counter.expires_at - current)))

    def count_for(self, key: str) -> int:
        """Return the live count for ``key`` (0 when absent or expired)."""
        with self._lock:
            counter = self._counters.get(key)
            if counter is None or self._is_expired(counter, self._clock()):
                return 0
            return counter.count

    async def increment(
        self,
        key: str,
        *,
        limit: int,
        period_seconds: int,
        now: int,
    ) -> CounterResult:
        with self._lock:
            current = self._clock()
            if len(self._counters) >= self._purge_threshold and current >= self._next_purge_at:
                self._purge_expired(current)

            counter = self._counters.get(key)
            if counter is None or self._is_expired(counter, current):
                counter = _Counter(count=0, expires_at=None)
                self._counters[key] = counter

            counter.count += 1
            if counter.count == 1:
                counter.expires_at = current + period_seconds

            ttl = self._ttl(counter, current)
            if ttl < 0:
                ttl = period_seconds

            count = counter.count

        limited = count > limit
        remaining = 0 if limited else limit - count
        return CounterResult(limited=limited, remaining=remaining, reset_at=now + ttl)
