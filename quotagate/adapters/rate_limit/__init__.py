"""Counting store adapters.

Redis is the shared store used across a fleet of workers; the in-memory store
serves single-process deployments and tests behind the same interface.
"""

from quotagate.adapters.rate_limit.base import AbstractCounterStore, CounterResult
from quotagate.adapters.rate_limit.in_memory import InMemoryCounterStore
from quotagate.adapters.rate_limit.redis import RedisCounterStore, create_redis_client

__all__ = [
    "AbstractCounterStore",
    "CounterResult",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "create_redis_client",
]
