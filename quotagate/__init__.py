"""Fixed-window request admission control backed by a shared counting store."""

from quotagate.adapters.rate_limit import (
    AbstractCounterStore,
    CounterResult,
    InMemoryCounterStore,
    RedisCounterStore,
)
from quotagate.core.builder import LimiterBuilder
from quotagate.core.config import FailurePolicy
from quotagate.core.errors import (
    ConfigurationAppError,
    RateLimitExceededError,
    StoreConnectionError,
    StoreOperationError,
    StoreUnavailableError,
    UnresolvedKeyError,
)
from quotagate.core.key_resolver import KeyResolver, KeySource, ResolvedKey
from quotagate.core.limiter import Decision, Limiter, LimiterConfig
from quotagate.core.rate_limit import RateLimitMiddleware

__all__ = [
    "AbstractCounterStore",
    "ConfigurationAppError",
    "CounterResult",
    "Decision",
    "FailurePolicy",
    "InMemoryCounterStore",
    "KeyResolver",
    "KeySource",
    "Limiter",
    "LimiterBuilder",
    "LimiterConfig",
    "RateLimitExceededError",
    "RateLimitMiddleware",
    "RedisCounterStore",
    "ResolvedKey",
    "StoreConnectionError",
    "StoreOperationError",
    "StoreUnavailableError",
    "UnresolvedKeyError",
]
