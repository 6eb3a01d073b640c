"""Fixed-window limiter: turns store replies into admission decisions.

The limiter never caches counts locally. Every evaluation goes to the shared
store, because rejecting exactly the (limit + 1)-th request depends on the
fleet-wide count, not on what this process has seen.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

from starlette.requests import Request

from quotagate.adapters.rate_limit.base import AbstractCounterStore
from quotagate.core.config import FailurePolicy
from quotagate.core.key_resolver import KeyResolver, ResolvedKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of counting one request.

    Attributes:
        limited: Whether the request must be denied.
        limit: Max requests per window.
        remaining: Requests left in the current window (0 when limited).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Suggested wait when limited, else None.
    """

    limited: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class LimiterConfig:
    """Immutable runtime configuration, produced by LimiterBuilder."""

    limit: int
    period_seconds: int
    key_prefix: str
    resolver: KeyResolver
    unresolved_key_policy: FailurePolicy
    store_error_policy: FailurePolicy
    exempt_paths: frozenset[str]
    include_headers: bool


class Limiter:
    """Rate limiter bound to one policy and one counting store."""

    def __init__(
        self,
        config: LimiterConfig,
        store: AbstractCounterStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._store = store
        self._clock = clock
        self._in_flight: set[asyncio.Task] = set()

    @property
    def config(self) -> LimiterConfig:
        return self._config

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    def resolve_key(self, request: Request) -> ResolvedKey | None:
        return self._config.resolver.resolve(request)

    def is_exempt(self, path: str) -> bool:
        return path in self._config.exempt_paths

    async def evaluate(self, key: str, now: int | None = None) -> Decision:
        """Consume one unit for ``key`` and return the decision.

        The store call is shielded: if the caller is cancelled while it is in
        flight, the increment still completes and the unit stays consumed. A
        store failure nobody is left to receive is logged as
        ``rate_limit.store_failed_detached``.

        Args:
            key: Client key (unprefixed, non-empty).
            now: Caller's UNIX time in seconds; read from the clock if omitted.

        Returns:
            Decision for this request.

        Raises:
            ValueError: If ``key`` is empty.
            StoreUnavailableError: The store could not count the request.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if now is None:
            now = int(self._clock())

        task = asyncio.ensure_future(
            self._store.increment(
                f"{self._config.key_prefix}{key}",
                limit=self._config.limit,
                period_seconds=self._config.period_seconds,
                now=now,
            )
        )
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(_log_detached_failure)
            raise

        retry_after = max(0, result.reset_at - now) if result.limited else None
        return Decision(
            limited=result.limited,
            limit=self._config.limit,
            remaining=result.remaining,
            reset_at=result.reset_at,
            retry_after_seconds=retry_after,
        )

    async def count(self, key: str) -> tuple[bool, int, int]:
        """Consume one rate limit unit, returning ``(limited, remaining, reset_at)``."""
        decision = await self.evaluate(key)
        return decision.limited, decision.remaining, decision.reset_at


def _log_detached_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(
            "rate_limit.store_failed_detached",
            extra={
                "error_code": getattr(exc, "code", type(exc).__name__),
                "error_type": type(exc).__name__,
            },
        )
