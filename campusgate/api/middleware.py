"""
Request middleware: correlation id, structlog context and per-route metrics.

Clients (scanner apps, the dashboard) may send their own X-Request-ID so a
scan can be traced end to end; otherwise a short id is generated. Metrics
are labelled by the route template (``/api/v1/events/{event_id}``), never
the raw path, to keep label cardinality bounded.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from campusgate.core.logging import get_logger
from campusgate.core.metrics import http_request_latency, http_requests

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - start_time
            route = _route_template(request)
            http_requests.labels(method=request.method, route=route, status_code="500").inc()
            logger.error("request_failed", route=route, error=str(e), duration_ms=round(elapsed * 1000, 2))
            raise

        elapsed = time.perf_counter() - start_time
        route = _route_template(request)
        http_requests.labels(method=request.method, route=route, status_code=str(response.status_code)).inc()
        http_request_latency.labels(route=route).observe(elapsed)
        logger.info(
            "request_completed",
            route=route,
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
