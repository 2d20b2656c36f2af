"""
Sentry error tracking integration. Disabled unless SENTRY_DSN is set.
"""

import logging
import os

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from .logging import get_correlation_id, get_logger

logger = get_logger(__name__)


def init_sentry() -> bool:
    """
    Initialize Sentry error tracking. Returns True when enabled.

    Environment variables:
    - SENTRY_DSN: Sentry Data Source Name (required)
    - SENTRY_ENVIRONMENT: Environment name (falls back to ENVIRONMENT)
    - SENTRY_RELEASE: Release version (e.g., git commit SHA)
    - SENTRY_TRACES_SAMPLE_RATE: Fraction of transactions to trace
    - SENTRY_ENABLE: "false" disables Sentry even with a DSN
    """
    sentry_dsn = os.getenv("SENTRY_DSN")
    sentry_enable = os.getenv("SENTRY_ENABLE", "true").lower() == "true"

    if not sentry_dsn or not sentry_enable:
        logger.info("Sentry is disabled (SENTRY_DSN not set or SENTRY_ENABLE=false)")
        return False

    environment = os.getenv("SENTRY_ENVIRONMENT") or os.getenv("ENVIRONMENT", "development")
    release = os.getenv("SENTRY_RELEASE") or "unknown"
    traces_sample_rate = float(
        os.getenv("SENTRY_TRACES_SAMPLE_RATE", "1.0" if environment == "production" else "0.1")
    )

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=environment,
        release=f"bid2-backend@{release}",
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=before_send_hook,
    )

    logger.info("Sentry initialized", extra={"environment": environment, "release": release})
    return True


def before_send_hook(event, hint):
    """Drop client disconnects; tag events with the correlation id."""
    if "exception" in event:
        for exc_value in event["exception"].get("values", []):
            if "client disconnected" in str(exc_value.get("value", "")).lower():
                return None

    correlation_id = get_correlation_id()
    if correlation_id:
        event.setdefault("tags", {})["correlation_id"] = correlation_id

    return event
