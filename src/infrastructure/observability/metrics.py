"""
Prometheus metrics for the user-deletion service.

Two groups live here: deletion outcome counters, fed from finished
``DeletionResult`` objects by ``PrometheusDeletionMetrics``, and HTTP request
metrics recorded by ``RequestMetricsMiddleware``. ``setup_metrics`` installs
the middleware and the ``/metrics`` scrape endpoint on an app.
"""

from __future__ import annotations

import time

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from domain.models.deletion import DeletionResult, DeletionState

# ======================================================================
# Deletion metrics
# ======================================================================

user_deletions_total = Counter(
    "user_deletions_total",
    "Finished user deletions by final saga state",
    labelnames=["state"],
    registry=REGISTRY,
)

deletion_cascade_records_total = Counter(
    "deletion_cascade_records_total",
    "Records handled by the deletion cascade",
    labelnames=["outcome"],
    registry=REGISTRY,
)

deletion_external_outcomes_total = Counter(
    "deletion_external_outcomes_total",
    "Identity provider deletion outcomes",
    labelnames=["outcome"],
    registry=REGISTRY,
)

deletion_duration_seconds = Histogram(
    "deletion_duration_seconds",
    "Wall-clock duration of a user deletion",
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0),
    registry=REGISTRY,
)


class PrometheusDeletionMetrics:
    """Feeds the deletion counters from a finished ``DeletionResult``."""

    def record_deletion(self, result: DeletionResult) -> None:
        user_deletions_total.labels(state=result.state.value).inc()

        counts = {
            "deleted": result.records_deleted,
            "anonymized": result.records_anonymized,
            "reassigned": result.records_reassigned,
            "preserved": result.records_preserved,
            "failed": result.records_failed,
        }
        for outcome, count in counts.items():
            if count:
                deletion_cascade_records_total.labels(outcome=outcome).inc(count)

        # Aborted runs never reach the identity provider.
        if result.state in (DeletionState.EXTERNAL_ATTEMPTED, DeletionState.AUDITED):
            deletion_external_outcomes_total.labels(outcome=_external_outcome(result)).inc()

        if result.duration_ms is not None:
            deletion_duration_seconds.observe(result.duration_ms / 1000)


def _external_outcome(result: DeletionResult) -> str:
    if result.external_error:
        return "error"
    return "deleted" if result.external_deleted else "skipped"


# ======================================================================
# HTTP metrics
# ======================================================================

http_requests_total = Counter(
    "http_requests_total",
    "HTTP requests by route and status class",
    labelnames=["method", "route", "status_class"],
    registry=REGISTRY,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    labelnames=["method", "route"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    registry=REGISTRY,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently being served",
    registry=REGISTRY,
)


def route_template(request: Request) -> str:
    """The matched route's path template, e.g. ``/api/v1/admin/users/{user_id}/deletion``.

    Unmatched requests share one label value so arbitrary URLs cannot blow
    up label cardinality.
    """
    route = request.scope.get("route")
    return getattr(route, "path", None) or "<unmatched>"


class RequestMetricsMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        http_requests_in_progress.inc()
        started = time.perf_counter()
        status_class = "5xx"
        try:
            response = await call_next(request)
            status_class = f"{response.status_code // 100}xx"
            return response
        finally:
            http_requests_in_progress.dec()
            route = route_template(request)
            http_requests_total.labels(request.method, route, status_class).inc()
            http_request_duration_seconds.labels(request.method, route).observe(
                time.perf_counter() - started
            )


def setup_metrics(app: FastAPI) -> None:
    """Install request instrumentation and expose ``GET /metrics``."""
    app.add_middleware(RequestMetricsMiddleware)

    @app.get("/metrics", include_in_schema=False)
    async def scrape() -> Response:
        return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
