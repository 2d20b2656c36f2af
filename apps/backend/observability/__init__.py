"""
Observability infrastructure for the Bid 2.0 backend.

Provides:
- Structured logging with correlation IDs
- Sentry error tracking
- Prometheus metrics
- Health check utilities
"""

from .logging import get_logger, correlation_id_context, get_correlation_id
from .metrics import (
    metrics_registry,
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
    llm_api_duration_seconds,
    llm_api_errors_total,
    business_events_total,
    record_business_event,
)

__all__ = [
    "get_logger",
    "correlation_id_context",
    "get_correlation_id",
    "metrics_registry",
    "http_requests_total",
    "http_request_duration_seconds",
    "http_requests_in_progress",
    "llm_api_duration_seconds",
    "llm_api_errors_total",
    "business_events_total",
    "record_business_event",
]
