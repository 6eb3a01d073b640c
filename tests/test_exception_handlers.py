"""Tests for global exception handlers.

Validates that application errors map to the right HTTP status codes, share
one error envelope, and that unexpected errors never leak details.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from quotagate.core.errors import (
    AppError,
    ConfigurationAppError,
    RateLimitExceededError,
    StoreConnectionError,
    StoreOperationError,
    UnresolvedKeyError,
)
from quotagate.core.exception_handlers import (
    error_response,
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (RateLimitExceededError(code="rate_limit_exceeded", message="x"), 429),
            (UnresolvedKeyError(code="rate_limit_key_unresolved", message="x"), 429),
            (StoreConnectionError(code="store_connection_failed", message="x"), 503),
            (StoreOperationError(code="store_operation_failed", message="x"), 503),
            (ConfigurationAppError(code="invalid_rate_limit_config", message="x"), 500),
            (AppError(code="bad_request", message="x"), 400),
        ],
    )
    def test_status_code_for(self, exc: AppError, expected: int) -> None:
        assert status_code_for(exc) == expected


class TestAppErrorHandler:
    """Test handler for AppError and subclasses raised from routes."""

    def test_store_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/count")
        async def count_endpoint():
            raise StoreConnectionError(
                code="store_connection_failed",
                message="Could not reach the rate limit store",
                details={"store": "redis"},
            )

        response = client.get("/count")

        assert response.status_code == 503
        data = response.json()
        assert data["error"]["code"] == "store_connection_failed"
        assert data["error"]["details"] == {"store": "redis"}
        assert "request_id" in data["error"]

    def test_quota_denial_returns_429(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/limited")
        async def limited_endpoint():
            raise RateLimitExceededError(code="rate_limit_exceeded", message="Slow down")

        response = client.get("/limited")

        assert response.status_code == 429
        data = response.json()
        assert data["error"]["message"] == "Slow down"
        assert "details" not in data["error"]

    def test_configuration_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/misconfigured")
        async def misconfigured_endpoint():
            raise ConfigurationAppError(
                code="invalid_rate_limit_config",
                message="limit must be a positive integer",
                details={"config_key": "limit"},
            )

        response = client.get("/misconfigured")

        assert response.status_code == 500
        assert response.json()["error"]["details"] == {"config_key": "limit"}


class TestErrorResponse:
    def test_headers_and_status_override(self) -> None:
        exc = RateLimitExceededError(code="rate_limit_exceeded", message="x")

        response = error_response(exc, status_code=418, headers={"Retry-After": "7"})

        assert response.status_code == 418
        assert response.headers["Retry-After"] == "7"
        assert json.loads(response.body)["error"]["code"] == "rate_limit_exceeded"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_general_exception_handler_logic(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: redis://secret@host refused")
        response = asyncio.run(general_exception_handler(request, exc))

        data = json.loads(bytes(response.body).decode())
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "redis://" not in data["error"]["message"]
        assert "request_id" in data["error"]

    def test_unexpected_route_error_is_generic(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/boom")
        async def boom_endpoint():
            raise ValueError("Test error with details")

        response = client.get("/boom")

        assert response.status_code == 500
        assert "Traceback" not in response.text
        assert "ValueError" not in response.text

    def test_setup_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers
