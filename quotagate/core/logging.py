"""Logging utilities with JSON formatting, redaction, and request correlation.

Rate limiting logs carry client identifiers (API keys, session cookies, IP
addresses). This module makes sure they never reach log sinks in clear text:
- request_id propagation via contextvars
- redaction of sensitive fields on log records
- hashing helper for client keys that still need to be correlated
- JSON formatter and stdout/rotating-file handlers
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping

from quotagate.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

# Extras (and nested mapping keys) never written in clear text
SENSITIVE_KEYS: frozenset[str] = frozenset({
    "api_key",
    "x-api-key",
    "authorization",
    "token",
    "secret",
    "password",
    "cookie",
    "set-cookie",
    "sid",
    "session",
    "session_id",
    "client_key",
    "redis_url",
})

# LogRecord attributes that are not user supplied extras
_EXCLUDED_ATTRS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "stack",
}


def set_request_id(request_id: str | None) -> None:
    """Store the current request id in a context variable."""

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Fetch the current request id from context."""

    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_client_key(key: str) -> str:
    """Return a short, stable digest of a client key for log correlation.

    Args:
        key: Raw client key (API key, cookie value, address...).

    Returns:
        First 16 hex characters of the SHA-256 digest.
    """

    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _redact_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _redact_value(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_redact_value(v) for v in value)
    return value


def _sanitize_record(record: LogRecord) -> dict[str, Any]:
    """User-supplied extras of ``record``, with sensitive fields redacted."""

    return {
        key: REDACTED if key.lower() in SENSITIVE_KEYS else _redact_value(value)
        for key, value in record.__dict__.items()
        if key not in _EXCLUDED_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Replace sensitive extras on the record with ``[REDACTED]``."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in _sanitize_record(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: event name, level, request id and extras."""

    def format(self, record: LogRecord) -> str:  # noqa: D401
        record_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            record_data["request_id"] = request_id

        record_data.update(_sanitize_record(record))

        if record.exc_info:
            record_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(record_data, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Construct the logging handler based on configuration.

    Args:
        log_settings: Resolved logging settings from environment.

    Returns:
        Configured logging handler (stdout or rotating file).
    """

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/quotagate.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Configure root logger with JSON formatter and redaction.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    level = getattr(logging, cfg.level.upper(), logging.INFO)
    handler = _build_handler(cfg)

    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = JsonFormatter()

    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
