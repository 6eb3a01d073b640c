"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import that could build the global
settings, so tests never pick up a developer's .env file or Redis URL.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("LOG_FORMAT", "plain")

import pytest  # noqa: E402

from quotagate.adapters.rate_limit.in_memory import InMemoryCounterStore  # noqa: E402


class FakeTime:
    """Deterministic clock shared by a limiter and its in-memory store."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def memory_store(fake_time: FakeTime) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=fake_time.time)
