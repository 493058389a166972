"""
API Middleware

Request logging with a per-request id bound into structlog contextvars, so
every log line emitted while handling the request carries it.
"""

import time
from typing import Callable
import uuid

from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

logger = structlog.get_logger(__name__)

HTTP_REQUESTS = Counter(
    "analytics_http_requests_total",
    "HTTP requests handled",
    ["method", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "analytics_http_request_duration_seconds",
    "HTTP request latency",
    ["method"],
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing information"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Request failed", error=str(e), error_type=type(e).__name__)
            HTTP_REQUESTS.labels(method=request.method, status_code="500").inc()
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        HTTP_REQUESTS.labels(method=request.method, status_code=str(response.status_code)).inc()
        HTTP_REQUEST_DURATION.labels(method=request.method).observe(duration_ms / 1000)

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id

        return response
