"""
FastAPI middleware for observability.

Provides:
- Request correlation ID injection (X-Request-ID)
- RED metrics per sanitized endpoint
- Request/response logging
"""

import re
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import get_logger, correlation_id_context
from .metrics import (
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
)

logger = get_logger(__name__)

SLOW_REQUEST_SECONDS = 2.0


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Correlation ids, metrics and access logging for every request."""

    def __init__(self, app: ASGIApp, enable_request_logging: bool = True):
        super().__init__(app)
        self.enable_request_logging = enable_request_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")

        with correlation_id_context(correlation_id) as req_id:
            request.state.correlation_id = req_id

            path = self._sanitize_path(request.url.path)
            method = request.method
            quiet = self._is_health_check(request)

            http_requests_in_progress.labels(method=method, endpoint=path).inc()
            start_time = time.time()

            try:
                response = await call_next(request)
            except Exception as exc:
                duration = time.time() - start_time
                http_requests_total.labels(method=method, endpoint=path, status=500).inc()
                http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)
                logger.error(
                    "Request failed",
                    extra={
                        "method": method,
                        "path": path,
                        "duration_seconds": round(duration, 3),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise
            finally:
                http_requests_in_progress.labels(method=method, endpoint=path).dec()

            duration = time.time() - start_time
            http_requests_total.labels(method=method, endpoint=path, status=response.status_code).inc()
            http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)
            response.headers["X-Request-ID"] = req_id

            if self.enable_request_logging and not quiet:
                logger.info(
                    "Request completed",
                    extra={
                        "method": method,
                        "path": path,
                        "status_code": response.status_code,
                        "duration_seconds": round(duration, 3),
                    },
                )
            if duration > SLOW_REQUEST_SECONDS and not quiet:
                # Mostly LLM-backed endpoints
                logger.warning(
                    "Slow request detected",
                    extra={"method": method, "path": path, "duration_seconds": round(duration, 3)},
                )

            return response

    def _sanitize_path(self, path: str) -> str:
        """Replace numeric ids with a placeholder to bound metric cardinality."""
        return re.sub(r"/\d+", "/{id}", path)

    def _is_health_check(self, request: Request) -> bool:
        return request.url.path.startswith("/health") or request.url.path.startswith("/metrics")
