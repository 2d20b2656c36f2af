"""
Structured logging for the Bid 2.0 backend.

Every record carries the request's correlation id. LOG_FORMAT=json switches
the handler to python-json-logger (the production default); otherwise a
single-line text format is used.

Usage:
    from observability import get_logger

    logger = get_logger(__name__)
    logger.info("RFQ sent", extra={"rfq_id": 12, "recipients": 3})
"""

import logging
import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

from pythonjsonlogger import jsonlogger

SERVICE = "bid2-backend"
REDACTED = "[REDACTED]"

# Keys whose values never reach a log line
SECRET_KEYS = frozenset({
    "authorization",
    "token",
    "session_token",
    "password",
    "secret",
    "api_key",
    "llm_api_key",
    "groq_api_key",
})

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


@contextmanager
def correlation_id_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id (generated when absent) for the duration of the block."""
    value = correlation_id or f"req-{uuid.uuid4().hex[:16]}"
    token = _correlation_id.set(value)
    try:
        yield value
    finally:
        _correlation_id.reset(token)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if str(k).lower() in SECRET_KEYS else _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) for v in value)
    return value


class RequestContextFilter(logging.Filter):
    """Adds correlation_id and scrubs secret-looking extras and args."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        if record.args:
            record.args = _scrub(record.args)
        for key in list(vars(record)):
            if key.lower() in SECRET_KEYS:
                setattr(record, key, REDACTED)
        return True


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("level", record.levelname)
        log_record.setdefault("logger", record.name)
        log_record["service"] = SERVICE
        log_record["environment"] = os.getenv("ENVIRONMENT", "development")


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return ServiceJsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(correlation_id)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        )
    return logging.Formatter(
        "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """
    Install one stream handler on the root logger.

    LOG_LEVEL sets the level (INFO). LOG_FORMAT is json or text; it defaults
    to json when ENVIRONMENT=production.
    """
    default_format = "json" if os.getenv("ENVIRONMENT") == "production" else "text"
    log_format = os.getenv("LOG_FORMAT", default_format).lower()

    handler = logging.StreamHandler()
    handler.setFormatter(_formatter(log_format))
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
