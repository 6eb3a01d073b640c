"""Redis counting store.

Runs the whole fixed-window step (INCR, EXPIRE on creation, TTL read) as one
Lua script, so every increment on a key is serialized by Redis itself and no
caller can observe a count between another caller's read and write.
"""

from __future__ import annotations

import logging

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from quotagate.adapters.rate_limit.base import AbstractCounterStore, CounterResult
from quotagate.core.config import RedisSettings
from quotagate.core.errors import StoreConnectionError, StoreOperationError

logger = logging.getLogger(__name__)


FIXED_WINDOW_SCRIPT = """
local key   = KEYS[1]
local limit = tonumber(ARGV[1])
local win   = tonumber(ARGV[2])
local now   = tonumber(ARGV[3])

local cnt = redis.call("INCR", key)
if cnt == 1 then
    redis.call("EXPIRE", key, win)
end

local ttl = redis.call("TTL", key)
if ttl < 0 then ttl = win end

local limited = cnt > limit and 1 or 0
local remaining = limited == 1 and 0 or (limit - cnt)
return {limited, remaining, now + ttl}
"""


def create_redis_client(redis_settings: RedisSettings) -> redis.Redis:
    """Build a pooled asyncio Redis client from settings.

    The client connects lazily, so building it never blocks startup.
    """

    kwargs = {
        "socket_timeout": redis_settings.socket_timeout_seconds,
        "socket_connect_timeout": redis_settings.socket_timeout_seconds,
    }
    if redis_settings.max_connections is not None:
        kwargs["max_connections"] = redis_settings.max_connections
    return redis.from_url(redis_settings.url, **kwargs)


class RedisCounterStore(AbstractCounterStore):
    """Counting store backed by a shared Redis instance.

    The client (and its connection pool) is owned by the caller; each
    increment borrows one connection for a single script round trip.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        # EVALSHA with automatic EVAL fallback on NOSCRIPT
        self._script = client.register_script(FIXED_WINDOW_SCRIPT)

    @property
    def client(self) -> redis.Redis:
        return self._client

    async def increment(
        self,
        key: str,
        *,
        limit: int,
        period_seconds: int,
        now: int,
    ) -> CounterResult:
        try:
            reply = await self._script(keys=[key], args=[limit, period_seconds, now])
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            logger.warning(
                "rate_limit.store_connection_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise StoreConnectionError(
                code="store_connection_failed",
                message="Could not reach the rate limit store",
                details={"store": "redis"},
            ) from exc
        except RedisError as exc:
            logger.error(
                "rate_limit.store_operation_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise StoreOperationError(
                code="store_operation_failed",
                message="Rate limit counting operation failed",
                details={"store": "redis"},
            ) from exc

        try:
            limited, remaining, reset_at = (int(value) for value in reply)
        except (TypeError, ValueError) as exc:
            raise StoreOperationError(
                code="store_reply_malformed",
                message="Rate limit store returned an unexpected reply",
                details={"store": "redis", "context": {"reply": repr(reply)}},
            ) from exc

        return CounterResult(limited=limited == 1, remaining=remaining, reset_at=reset_at)
