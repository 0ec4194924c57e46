"""
Monitoring & Observability Middleware
Request logging, Prometheus metrics and health reporting.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict

import structlog
from fastapi import Request, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

from eventbook.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        (
            structlog.processors.JSONRenderer()
            if settings.monitoring.LOG_FORMAT == "json"
            else structlog.dev.ConsoleRenderer()
        ),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

struct_logger = structlog.get_logger("eventbook.requests")

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress", "HTTP requests currently being served"
)
ERRORS_TOTAL = Counter(
    "errors_total", "Unhandled application errors", ["error_type", "endpoint"]
)
BOOKING_OPERATIONS = Counter(
    "booking_operations_total",
    "Reservation and cancellation attempts by outcome",
    ["operation", "outcome"],
)


def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, logs it and records metrics"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        client_ip = _client_ip(request)

        start_time = time.time()
        HTTP_REQUESTS_IN_PROGRESS.inc()
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.time() - start_time
            ERRORS_TOTAL.labels(
                error_type=e.__class__.__name__, endpoint=_endpoint_label(request)
            ).inc()
            struct_logger.error(
                "request_failed",
                request_id=request_id,
                method=request.method,
                url=str(request.url),
                duration=duration,
                error=str(e),
                error_type=e.__class__.__name__,
                client_ip=client_ip,
            )
            raise
        finally:
            HTTP_REQUESTS_IN_PROGRESS.dec()

        duration = time.time() - start_time
        endpoint = _endpoint_label(request)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method, endpoint=endpoint, status_code=response.status_code
        ).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(
            method=request.method, endpoint=endpoint
        ).observe(duration)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        struct_logger.info(
            "request_completed",
            request_id=request_id,
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            duration=duration,
            client_ip=client_ip,
        )
        return response


async def get_health_status() -> Dict[str, Any]:
    """Database and cache health, ``degraded`` if either is down"""
    from eventbook.core.database_manager import db_manager
    from eventbook.utils.cache import health_check as cache_health_check

    db_health = await db_manager.health_check()
    cache_health = await cache_health_check()

    overall_status = "healthy"
    if db_health.get("status") != "healthy" or cache_health.get("status") != "healthy":
        overall_status = "degraded"

    return {
        "status": overall_status,
        "system": {
            "timestamp": time.time(),
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        },
        "database": db_health,
        "cache": cache_health,
        "checks": {
            "database": db_health.get("status") == "healthy",
            "cache": cache_health.get("status") == "healthy",
        },
    }


async def get_prometheus_metrics() -> str:
    return str(generate_latest().decode("utf-8"))
