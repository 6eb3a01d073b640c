"""Limiter construction and validation.

All configuration problems surface here, at startup. Once a Limiter is built,
the only request-time failures left are store failures and genuinely
per-request conditions such as an unresolvable client key.
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Callable, Iterable

from quotagate.adapters.rate_limit.base import AbstractCounterStore
from quotagate.core.config import (
    DEFAULT_COOKIE_NAME,
    DEFAULT_KEY_PREFIX,
    DEFAULT_PERIOD_SECONDS,
    DEFAULT_REQUEST_LIMIT,
    DEFAULT_SESSION_KEY,
    FailurePolicy,
    LimiterSettings,
)
from quotagate.core.errors import ConfigurationAppError
from quotagate.core.key_resolver import (
    DEFAULT_RESOLUTION_ORDER,
    KeyFn,
    KeyResolver,
    KeySource,
    client_address_key,
    cookie_key,
    header_key,
    session_key,
)
from quotagate.core.limiter import Limiter, LimiterConfig


def _config_error(message: str, config_key: str) -> ConfigurationAppError:
    return ConfigurationAppError(
        code="invalid_rate_limit_config",
        message=message,
        details={"config_key": config_key},
    )


def _policy(value: FailurePolicy | str, config_key: str) -> FailurePolicy:
    try:
        return FailurePolicy(value)
    except ValueError as exc:
        raise _config_error(f"unknown failure policy: {value!r}", config_key) from exc


class LimiterBuilder:
    """Fluent builder for Limiter.

    Usage:
        limiter = (
            LimiterBuilder(RedisCounterStore(client))
            .limit(100)
            .period(60)
            .header_name("X-API-Key")
            .build()
        )
    """

    def __init__(self, store: AbstractCounterStore) -> None:
        self._store = store
        self._limit = DEFAULT_REQUEST_LIMIT
        self._period: int | float | timedelta = DEFAULT_PERIOD_SECONDS
        self._key_prefix = DEFAULT_KEY_PREFIX
        self._key_fn: KeyFn | None = None
        self._header_name: str | None = None
        self._cookie_name: str | None = DEFAULT_COOKIE_NAME
        self._session_enabled = False
        self._session_key: str | None = None
        self._client_address_fallback = True
        self._trust_forwarded_for = False
        self._resolution_order: tuple[KeySource, ...] | None = None
        self._unresolved_key_policy = FailurePolicy.OPEN
        self._store_error_policy = FailurePolicy.CLOSED
        self._exempt_paths: frozenset[str] = frozenset()
        self._include_headers = True
        self._clock: Callable[[], float] = time.time

    @classmethod
    def from_settings(
        cls,
        store: AbstractCounterStore,
        limiter_settings: LimiterSettings,
    ) -> "LimiterBuilder":
        """Pre-populate a builder from environment settings."""
        builder = (
            cls(store)
            .limit(limiter_settings.limit)
            .period(limiter_settings.period_seconds)
            .key_prefix(limiter_settings.key_prefix)
            .cookie_name(limiter_settings.cookie_name)
            .client_address_fallback(limiter_settings.client_address_fallback)
            .trust_forwarded_for(limiter_settings.trust_forwarded_for)
            .unresolved_key_policy(limiter_settings.unresolved_key_policy)
            .store_error_policy(limiter_settings.store_error_policy)
            .include_headers(limiter_settings.include_headers)
            .exempt_paths(p.strip() for p in limiter_settings.exempt_paths.split(",") if p.strip())
        )
        if limiter_settings.header_name:
            builder.header_name(limiter_settings.header_name)
        if limiter_settings.session_enabled:
            builder.session_key(limiter_settings.session_key)
        return builder

    def limit(self, limit: int) -> "LimiterBuilder":
        self._limit = limit
        return self

    def period(self, period: int | float | timedelta) -> "LimiterBuilder":
        """Set the window length, in seconds or as a timedelta."""
        self._period = period
        return self

    def key_prefix(self, prefix: str) -> "LimiterBuilder":
        self._key_prefix = prefix
        return self

    def key_fn(self, key_fn: KeyFn) -> "LimiterBuilder":
        """Derive the key with custom logic; tried before every built-in strategy."""
        self._key_fn = key_fn
        return self

    def header_name(self, name: str) -> "LimiterBuilder":
        self._header_name = name
        return self

    def cookie_name(self, name: str | None) -> "LimiterBuilder":
        """Set the key cookie; None disables cookie resolution."""
        self._cookie_name = name
        return self

    def enable_session(self, enabled: bool = True) -> "LimiterBuilder":
        self._session_enabled = enabled
        return self

    def session_key(self, key: str = DEFAULT_SESSION_KEY) -> "LimiterBuilder":
        """Resolve the key from this session attribute (enables sessions)."""
        self._session_key = key
        self._session_enabled = True
        return self

    def client_address_fallback(self, enabled: bool = True) -> "LimiterBuilder":
        self._client_address_fallback = enabled
        return self

    def trust_forwarded_for(self, enabled: bool = True) -> "LimiterBuilder":
        self._trust_forwarded_for = enabled
        return self

    def resolution_order(self, *sources: KeySource | str) -> "LimiterBuilder":
        """Override the order strategies are tried in.

        Every listed source must be configured; configured sources that are
        not listed are left out of the chain.
        """
        try:
            self._resolution_order = tuple(KeySource(s) for s in sources)
        except ValueError as exc:
            raise _config_error(str(exc), "resolution_order") from exc
        return self

    def unresolved_key_policy(self, policy: FailurePolicy | str) -> "LimiterBuilder":
        self._unresolved_key_policy = _policy(policy, "unresolved_key_policy")
        return self

    def store_error_policy(self, policy: FailurePolicy | str) -> "LimiterBuilder":
        self._store_error_policy = _policy(policy, "store_error_policy")
        return self

    def exempt_paths(self, paths: Iterable[str]) -> "LimiterBuilder":
        self._exempt_paths = frozenset(paths)
        return self

    def include_headers(self, enabled: bool = True) -> "LimiterBuilder":
        self._include_headers = enabled
        return self

    def clock(self, clock: Callable[[], float]) -> "LimiterBuilder":
        self._clock = clock
        return self

    def _period_seconds(self) -> int:
        period = self._period
        if isinstance(period, timedelta):
            period = period.total_seconds()
        if isinstance(period, bool) or not isinstance(period, (int, float)):
            raise _config_error("period must be a number of seconds or a timedelta", "period")
        if period <= 0 or period != int(period):
            raise _config_error("period must be a positive whole number of seconds", "period")
        return int(period)

    def _configured_strategies(self) -> dict[KeySource, KeyFn]:
        strategies: dict[KeySource, KeyFn] = {}

        if self._key_fn is not None:
            strategies[KeySource.CUSTOM] = self._key_fn

        if self._header_name is not None:
            if not self._header_name.strip():
                raise _config_error("header_name must not be empty", "header_name")
            strategies[KeySource.HEADER] = header_key(self._header_name)

        if self._cookie_name is not None:
            if not self._cookie_name.strip():
                raise _config_error("cookie_name must not be empty", "cookie_name")
            strategies[KeySource.COOKIE] = cookie_key(self._cookie_name)

        if self._session_enabled:
            attribute = DEFAULT_SESSION_KEY if self._session_key is None else self._session_key
            if not attribute.strip():
                raise _config_error("session_key must not be empty", "session_key")
            strategies[KeySource.SESSION] = session_key(attribute)
        elif self._session_key is not None:
            raise _config_error(
                "session_key is set but session resolution is disabled",
                "session_key",
            )

        if self._client_address_fallback:
            strategies[KeySource.CLIENT_ADDRESS] = client_address_key(
                trust_forwarded_for=self._trust_forwarded_for
            )

        return strategies

    def _build_resolver(self) -> KeyResolver:
        strategies = self._configured_strategies()

        if self._resolution_order is None:
            order = [s for s in DEFAULT_RESOLUTION_ORDER if s in strategies]
        else:
            order = list(self._resolution_order)
            if len(set(order)) != len(order):
                raise _config_error("resolution_order lists a source twice", "resolution_order")
            missing = [s.value for s in order if s not in strategies]
            if missing:
                raise _config_error(
                    f"resolution_order names unconfigured sources: {', '.join(missing)}",
                    "resolution_order",
                )

        if not order:
            raise _config_error("no client key strategy is configured", "resolution_order")

        return KeyResolver([(source, strategies[source]) for source in order])

    def build(self) -> Limiter:
        """Validate the configuration and return a ready Limiter.

        Raises:
            ConfigurationAppError: If any setting is invalid or conflicting.
        """
        if isinstance(self._limit, bool) or not isinstance(self._limit, int) or self._limit < 1:
            raise _config_error("limit must be a positive integer", "limit")

        config = LimiterConfig(
            limit=self._limit,
            period_seconds=self._period_seconds(),
            key_prefix=self._key_prefix,
            resolver=self._build_resolver(),
            unresolved_key_policy=self._unresolved_key_policy,
            store_error_policy=self._store_error_policy,
            exempt_paths=self._exempt_paths,
            include_headers=self._include_headers,
        )
        return Limiter(config, self._store, clock=self._clock)
