"""
Prometheus metrics collection for the Bid 2.0 backend.

Provides RED metrics (Rate, Errors, Duration), LLM call metrics and
RFQ lifecycle business counters.
"""

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    REGISTRY,
)

# Use the default registry
metrics_registry = REGISTRY

# HTTP Metrics (RED - Rate, Errors, Duration)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=metrics_registry,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
    registry=metrics_registry,
)

# External API Metrics
llm_api_duration_seconds = Histogram(
    "llm_api_duration_seconds",
    "LLM API call duration in seconds",
    ["provider", "model"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
    registry=metrics_registry,
)

llm_api_errors_total = Counter(
    "llm_api_errors_total",
    "Total LLM API errors",
    ["provider", "error_type"],  # error_type: UpstreamUnavailable, UnparseableResponse
    registry=metrics_registry,
)

# Business Metrics
business_events_total = Counter(
    "business_events_total",
    "Total business events",
    ["event_type"],  # rfq_created, rfq_sent, bid_submitted, bid_selected, etc.
    registry=metrics_registry,
)


def record_business_event(event_type: str) -> None:
    business_events_total.labels(event_type=event_type).inc()
