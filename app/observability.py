import logging
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.config import settings

logger = logging.getLogger("app.http")

REQUEST_COUNT = Counter(
    "docman_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "docman_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def _route_path(request: Request) -> str:
    # Label by route template so ids do not explode metric cardinality.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request metrics, timing header and slow-request logging."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            elapsed = time.perf_counter() - start
            path = _route_path(request)
            REQUEST_COUNT.labels(request.method, path, str(status_code)).inc()
            REQUEST_LATENCY.labels(request.method, path).observe(elapsed)

        duration_ms = round(elapsed * 1000, 2)
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        extra = {
            "http_method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "user_id": getattr(request.state, "user_id", None),
        }
        if duration_ms > settings.slow_request_threshold_ms:
            logger.warning(
                "Slow request: %s %s took %sms",
                request.method,
                request.url.path,
                duration_ms,
                extra=extra,
            )
        else:
            logger.debug(
                "%s %s -> %s", request.method, request.url.path, status_code, extra=extra
            )
        return response
