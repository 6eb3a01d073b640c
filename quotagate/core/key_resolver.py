"""Client key resolution.

A client key is whatever identifies the subject being rate limited. It is
derived per request by an ordered chain of strategies; the first strategy
returning a non-empty value wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from starlette.requests import Request

KeyFn = Callable[[Request], "str | None"]


class KeySource(str, Enum):
    """Where a client key came from."""

    CUSTOM = "custom"
    HEADER = "header"
    COOKIE = "cookie"
    SESSION = "session"
    CLIENT_ADDRESS = "client_address"


DEFAULT_RESOLUTION_ORDER: tuple[KeySource, ...] = (
    KeySource.CUSTOM,
    KeySource.HEADER,
    KeySource.COOKIE,
    KeySource.SESSION,
    KeySource.CLIENT_ADDRESS,
)


@dataclass(frozen=True)
class ResolvedKey:
    source: KeySource
    value: str


def header_key(header_name: str) -> KeyFn:
    """Build a strategy reading the key from a request header."""

    def _resolve(request: Request) -> str | None:
        return request.headers.get(header_name)

    return _resolve


def cookie_key(cookie_name: str) -> KeyFn:
    """Build a strategy using a cookie value verbatim as the key."""

    def _resolve(request: Request) -> str | None:
        return request.cookies.get(cookie_name)

    return _resolve


def session_key(attribute: str) -> KeyFn:
    """Build a strategy reading an attribute of the request session.

    Requests without a session attached (no session middleware installed)
    resolve to nothing instead of raising.
    """

    def _resolve(request: Request) -> str | None:
        if "session" not in request.scope:
            return None
        value = request.session.get(attribute)
        if value is None:
            return None
        return str(value)

    return _resolve


def client_address_key(*, trust_forwarded_for: bool = False) -> KeyFn:
    """Build a strategy using the client's network address.

    Args:
        trust_forwarded_for: Use the first X-Forwarded-For hop. Only enable
            behind a proxy that overwrites the header.
    """

    def _resolve(request: Request) -> str | None:
        if trust_forwarded_for:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                return forwarded.split(",")[0].strip()
        return request.client.host if request.client else None

    return _resolve


class KeyResolver:
    """Ordered chain of key strategies."""

    def __init__(self, strategies: Sequence[tuple[KeySource, KeyFn]]) -> None:
        self._strategies = tuple(strategies)

    @property
    def sources(self) -> tuple[KeySource, ...]:
        return tuple(source for source, _ in self._strategies)

    def resolve(self, request: Request) -> ResolvedKey | None:
        """Return the first non-empty key, or None when nothing resolves."""
        for source, strategy in self._strategies:
            value = strategy(request)
            if value:
                return ResolvedKey(source=source, value=value)
        return None
