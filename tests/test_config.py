"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from quotagate.core.config import FailurePolicy, LimiterSettings, RedisSettings


def test_limiter_defaults():
    limiter_settings = LimiterSettings()

    assert limiter_settings.limit == 5000
    assert limiter_settings.period_seconds == 3600
    assert limiter_settings.cookie_name == "sid"
    assert limiter_settings.session_key == "rate-api-id"
    assert limiter_settings.session_enabled is False
    assert limiter_settings.unresolved_key_policy is FailurePolicy.OPEN
    assert limiter_settings.store_error_policy is FailurePolicy.CLOSED


def test_policies_read_from_environment(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_LIMIT", "25")
    monkeypatch.setenv("RATE_LIMIT_UNRESOLVED_KEY_POLICY", "closed")
    monkeypatch.setenv("RATE_LIMIT_STORE_ERROR_POLICY", "open")

    limiter_settings = LimiterSettings()

    assert limiter_settings.limit == 25
    assert limiter_settings.unresolved_key_policy is FailurePolicy.CLOSED
    assert limiter_settings.store_error_policy is FailurePolicy.OPEN


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("RATE_LIMIT_LIMIT", "0"),
        ("RATE_LIMIT_PERIOD_SECONDS", "0"),
        ("RATE_LIMIT_STORE_ERROR_POLICY", "maybe"),
    ],
)
def test_invalid_values_fail_at_startup(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        LimiterSettings()


def test_redis_url_from_environment(monkeypatch):
    monkeypatch.setenv("REDIS_URL", "redis://cache:6380/2")

    assert RedisSettings().url == "redis://cache:6380/2"
