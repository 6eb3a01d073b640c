"""Counting store interface.

The limiter depends on this abstraction, not on a concrete store, so the same
evaluation and middleware code runs against Redis in production and an
in-process store in tests or single-worker deployments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import NamedTuple


class CounterResult(NamedTuple):
    """Raw reply of the atomic counting operation.

    Attributes:
        limited: True when the post-increment count exceeds the limit.
        remaining: Units left in the window (0 when limited).
        reset_at: UNIX epoch seconds when the window's counter expires.
    """

    limited: bool
    remaining: int
    reset_at: int


class AbstractCounterStore(ABC):
    """Interface for shared counting stores."""

    @abstractmethod
    async def increment(
        self,
        key: str,
        *,
        limit: int,
        period_seconds: int,
        now: int,
    ) -> CounterResult:
        """Atomically count one unit against ``key``.

        Implementations must increment, set the expiry on the first increment
        of a window and read the remaining TTL as one indivisible step with
        respect to every other increment on the same key.

        Args:
            key: Store key for the client.
            limit: Max units admitted per window.
            period_seconds: Window length, applied as the counter TTL.
            now: Caller's clock in UNIX seconds, used for ``reset_at``.

        Returns:
            CounterResult for this increment.

        Raises:
            StoreConnectionError: The store could not be reached.
            StoreOperationError: The store rejected or garbled the operation.
        """
        raise NotImplementedError
