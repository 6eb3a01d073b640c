"""Rate limiting middleware for FastAPI/Starlette applications.

Per request the middleware moves through:

    resolving -> evaluating -> admitted | denied | errored

- resolving: derive the client key. No key under the open policy admits the
  request unmetered; under the closed policy it is denied.
- evaluating: count the request against the shared store.
- admitted: forward downstream and annotate the response with quota headers.
- denied: short-circuit with 429 and Retry-After; downstream never runs.
- errored: the store failed; the store error policy admits (open) or answers
  503 (closed).

The decision is exposed to handlers as ``request.state.rate_limit``
(``None`` when the request was not metered).
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from quotagate.core.config import FailurePolicy
from quotagate.core.errors import (
    RateLimitExceededError,
    StoreUnavailableError,
    UnresolvedKeyError,
)
from quotagate.core.exception_handlers import error_response
from quotagate.core.limiter import Decision, Limiter
from quotagate.core.logging import hash_client_key

logger = logging.getLogger(__name__)


def rate_limit_headers(decision: Decision) -> dict[str, str]:
    """Quota telemetry headers for a decision."""
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }
    if decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Admit or deny requests using a fixed-window Limiter."""

    def __init__(self, app, limiter: Limiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request.state.rate_limit = None

        if self.limiter.is_exempt(request.url.path):
            return await call_next(request)

        config = self.limiter.config

        # --- Resolving ---
        resolved = self.limiter.resolve_key(request)
        if resolved is None:
            if config.unresolved_key_policy is FailurePolicy.OPEN:
                logger.info(
                    "rate_limit.unmetered",
                    extra={"reason": "key_unresolved", "path": request.url.path},
                )
                return await call_next(request)

            logger.warning(
                "rate_limit.denied",
                extra={"reason": "key_unresolved", "path": request.url.path},
            )
            return error_response(
                UnresolvedKeyError(
                    code="rate_limit_key_unresolved",
                    message="Request could not be attributed to a client.",
                )
            )

        key_hash = hash_client_key(resolved.value)

        # --- Evaluating ---
        try:
            decision = await self.limiter.evaluate(resolved.value)
        except StoreUnavailableError as exc:
            if config.store_error_policy is FailurePolicy.OPEN:
                logger.warning(
                    "rate_limit.store_unavailable",
                    extra={
                        "policy": "open",
                        "error_code": exc.code,
                        "key_source": resolved.source.value,
                        "key_hash": key_hash,
                    },
                )
                return await call_next(request)

            logger.error(
                "rate_limit.store_unavailable",
                extra={
                    "policy": "closed",
                    "error_code": exc.code,
                    "key_source": resolved.source.value,
                    "key_hash": key_hash,
                },
            )
            return error_response(
                StoreUnavailableError(
                    code="rate_limit_store_unavailable",
                    message="Rate limiting is temporarily unavailable. Try again later.",
                    details=exc.details,
                )
            )

        request.state.rate_limit = decision
        headers = rate_limit_headers(decision) if config.include_headers else {}

        # --- Denied ---
        if decision.limited:
            logger.warning(
                "rate_limit.exceeded",
                extra={
                    "key_source": resolved.source.value,
                    "key_hash": key_hash,
                    "limit": decision.limit,
                    "window_s": config.period_seconds,
                    "reset_at": decision.reset_at,
                    "retry_after_s": decision.retry_after_seconds,
                },
            )
            return error_response(
                RateLimitExceededError(
                    code="rate_limit_exceeded",
                    message="Rate limit exceeded. Try again later.",
                    details={
                        "limit": decision.limit,
                        "remaining": 0,
                        "reset_at": decision.reset_at,
                        "retry_after": decision.retry_after_seconds or 0,
                    },
                ),
                headers=headers,
            )

        # --- Admitted ---
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_source": resolved.source.value,
                "key_hash": key_hash,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "window_s": config.period_seconds,
            },
        )
        response = await call_next(request)
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response
