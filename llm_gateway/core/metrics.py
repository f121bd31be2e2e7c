from __future__ import annotations

import time
from typing import cast

from fastapi import APIRouter, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

metrics_router = APIRouter(tags=["monitoring"])

# Labels are closed sets only: route templates, provider ids, moderation categories.
# Never put model names supplied by callers or any prompt-derived value in a label.

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=("method", "route", "status_code"),
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=("method", "route", "status_code"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

moderation_verdicts_total = Counter(
    "moderation_verdicts_total",
    "Moderation verdicts by direction and category (category=none means safe)",
    labelnames=("direction", "category"),
)

moderation_failures_total = Counter(
    "moderation_failures_total",
    "Classifier failures resolved fail-open",
    labelnames=("direction",),
)

upstream_requests_total = Counter(
    "upstream_requests_total",
    "Provider calls by outcome (ok or an upstream error kind)",
    labelnames=("provider", "outcome"),
)

upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Provider call duration in seconds (to the last fragment when streaming)",
    labelnames=("provider",),
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0),
)


def _safe_route_label(request: Request) -> str:
    """
    Return a safe route label.

    Prefer the Starlette/FastAPI route template (e.g. /api/models/{provider}).
    If routing didn't match (404) or is otherwise unavailable, return "unmatched"
    to keep label cardinality bounded.
    """

    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if isinstance(path, str) and path:
        return path
    return "unmatched"


class PrometheusMetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            # For event streams this measures time-to-headers, not stream length.
            route_label = _safe_route_label(request)
            method = request.method
            code = str(int(status_code))
            duration = time.perf_counter() - started
            http_requests_total.labels(method=method, route=route_label, status_code=code).inc()
            http_request_duration_seconds.labels(
                method=method, route=route_label, status_code=code
            ).observe(duration)


@metrics_router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    payload = generate_latest()
    return Response(content=cast(bytes, payload), media_type=CONTENT_TYPE_LATEST)
