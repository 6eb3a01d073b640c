"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from quotagate.core.logging import (
    JsonFormatter,
    SensitiveDataFilter,
    clear_request_id,
    hash_client_key,
    set_request_id,
)


@pytest.fixture
def capture():
    """Logger wired with the redaction filter and JSON formatter."""

    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()


def test_redacts_client_identifiers(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.allowed",
        extra={
            "client_key": "203.0.113.9",
            "sid": "session-cookie-value",
            "x-api-key": "sk-secret-123",
            "key_hash": hash_client_key("203.0.113.9"),
        },
    )

    output = stream.getvalue()
    assert "203.0.113.9" not in output
    assert "session-cookie-value" not in output
    assert "sk-secret-123" not in output
    assert "[REDACTED]" in output
    assert hash_client_key("203.0.113.9") in output


def test_allows_quota_fields(capture):
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={"key_source": "cookie", "limit": 3, "remaining": 0, "retry_after_s": 45},
    )

    data = json.loads(stream.getvalue())
    assert data["message"] == "rate_limit.exceeded"
    assert data["level"] == "warning"
    assert data["key_source"] == "cookie"
    assert data["retry_after_s"] == 45
    assert "[REDACTED]" not in stream.getvalue()


def test_redacts_nested_dicts(capture):
    logger, stream = capture

    logger.info(
        "request_headers",
        extra={"headers": {"Cookie": "sid=abc", "user-agent": "pytest"}},
    )

    output = stream.getvalue()
    assert "sid=abc" not in output
    assert "pytest" in output


def test_includes_request_id_from_context(capture):
    logger, stream = capture

    set_request_id("req-123")
    try:
        logger.info("rate_limit.unmetered")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-123"


def test_hash_client_key_is_short_and_stable():
    first = hash_client_key("client-1")

    assert first == hash_client_key("client-1")
    assert first != hash_client_key("client-2")
    assert len(first) == 16
