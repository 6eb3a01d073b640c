"""Tests for LimiterBuilder validation and defaults."""

from datetime import timedelta

import pytest

from quotagate.core.builder import LimiterBuilder
from quotagate.core.config import FailurePolicy, LimiterSettings
from quotagate.core.errors import ConfigurationAppError
from quotagate.core.key_resolver import KeySource


def test_defaults(memory_store) -> None:
    config = LimiterBuilder(memory_store).build().config

    assert config.limit == 5000
    assert config.period_seconds == 3600
    assert config.key_prefix == "rate-limit:"
    assert config.resolver.sources == (KeySource.COOKIE, KeySource.CLIENT_ADDRESS)
    assert config.unresolved_key_policy is FailurePolicy.OPEN
    assert config.store_error_policy is FailurePolicy.CLOSED
    assert config.include_headers is True


def test_period_accepts_timedelta(memory_store) -> None:
    limiter = LimiterBuilder(memory_store).period(timedelta(minutes=2)).build()
    assert limiter.config.period_seconds == 120


def test_config_is_immutable(memory_store) -> None:
    config = LimiterBuilder(memory_store).build().config

    with pytest.raises(AttributeError):
        config.limit = 1  # type: ignore[misc]


@pytest.mark.parametrize("limit", [0, -1, 1.5, True])
def test_rejects_invalid_limit(memory_store, limit) -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        LimiterBuilder(memory_store).limit(limit).build()

    assert exc_info.value.details == {"config_key": "limit"}


@pytest.mark.parametrize("period", [0, -5, 1.5, timedelta(0), timedelta(milliseconds=500), "60"])
def test_rejects_invalid_period(memory_store, period) -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        LimiterBuilder(memory_store).period(period).build()

    assert exc_info.value.details == {"config_key": "period"}


def test_rejects_empty_names(memory_store) -> None:
    with pytest.raises(ConfigurationAppError):
        LimiterBuilder(memory_store).cookie_name("").build()
    with pytest.raises(ConfigurationAppError):
        LimiterBuilder(memory_store).header_name("  ").build()
    with pytest.raises(ConfigurationAppError):
        LimiterBuilder(memory_store).session_key("").build()


def test_rejects_session_key_without_sessions(memory_store) -> None:
    builder = LimiterBuilder(memory_store).session_key("uid").enable_session(False)

    with pytest.raises(ConfigurationAppError) as exc_info:
        builder.build()

    assert exc_info.value.details == {"config_key": "session_key"}


def test_rejects_duplicate_sources(memory_store) -> None:
    builder = LimiterBuilder(memory_store).resolution_order("cookie", "cookie")

    with pytest.raises(ConfigurationAppError):
        builder.build()


def test_rejects_unconfigured_source_in_order(memory_store) -> None:
    builder = LimiterBuilder(memory_store).resolution_order("header", "cookie")

    with pytest.raises(ConfigurationAppError) as exc_info:
        builder.build()

    assert "header" in exc_info.value.message


def test_rejects_unknown_source_name(memory_store) -> None:
    with pytest.raises(ConfigurationAppError):
        LimiterBuilder(memory_store).resolution_order("ip")


def test_rejects_unknown_policy(memory_store) -> None:
    with pytest.raises(ConfigurationAppError) as exc_info:
        LimiterBuilder(memory_store).store_error_policy("sometimes")

    assert exc_info.value.details == {"config_key": "store_error_policy"}


def test_rejects_empty_resolver_chain(memory_store) -> None:
    builder = LimiterBuilder(memory_store).cookie_name(None).client_address_fallback(False)

    with pytest.raises(ConfigurationAppError):
        builder.build()


def test_from_settings(memory_store) -> None:
    limiter_settings = LimiterSettings(
        limit=10,
        period_seconds=30,
        header_name="X-API-Key",
        session_enabled=True,
        client_address_fallback=False,
        store_error_policy="open",
        exempt_paths="/health, /metrics",
    )

    config = LimiterBuilder.from_settings(memory_store, limiter_settings).build().config

    assert config.limit == 10
    assert config.period_seconds == 30
    assert config.resolver.sources == (
        KeySource.HEADER,
        KeySource.COOKIE,
        KeySource.SESSION,
    )
    assert config.store_error_policy is FailurePolicy.OPEN
    assert config.exempt_paths == frozenset({"/health", "/metrics"})
