"""Prometheus metrics and Sentry integration.

Provides:
- MetricsMiddleware: ASGI middleware for HTTP request metrics
- track_store_call(): Context manager recording remote store request metrics
- pipeline_phase_moves_total: Counter of kanban phase moves by outcome
- init_sentry(): Initialize Sentry for the FastAPI app
- get_metrics_response(): Response body for the /metrics route
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import (
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ── HTTP Metrics ─────────────────────────────────────────────────────────────

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Remote Store Metrics ─────────────────────────────────────────────────────

store_requests_total = Counter(
    "store_requests_total",
    "Total requests sent to the remote data store",
    ["table", "operation", "status"],
)

store_request_duration_seconds = Histogram(
    "store_request_duration_seconds",
    "Remote data store request duration in seconds",
    ["table", "operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ── Pipeline Metrics ─────────────────────────────────────────────────────────

pipeline_phase_moves_total = Counter(
    "pipeline_phase_moves_total",
    "Kanban phase moves by outcome (confirmed, rolled_back)",
    ["outcome"],
)


# ── Metrics Middleware ───────────────────────────────────────────────────────


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that records Prometheus metrics for every HTTP request.

    Skips the /metrics endpoint itself to avoid self-referential counting.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        endpoint = request.url.path

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=str(response.status_code),
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)

        return response


# ── Store Metrics Helper ─────────────────────────────────────────────────────


@contextmanager
def track_store_call(table: str, operation: str) -> Iterator[None]:
    """Context manager that records count and duration of one store request.

    Usage:
        with track_store_call("deals", "update"):
            response = await client.patch(...)

    The request is counted as ``error`` when the body raises.
    """
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        store_requests_total.labels(
            table=table,
            operation=operation,
            status=status,
        ).inc()

        store_request_duration_seconds.labels(
            table=table,
            operation=operation,
        ).observe(time.perf_counter() - start_time)


# ── Sentry Integration ───────────────────────────────────────────────────────


def init_sentry(dsn: str, environment: str) -> None:
    """Initialize Sentry SDK with FastAPI/Starlette integrations.

    Args:
        dsn: Sentry DSN string.
        environment: Deployment environment (development, staging, production).
    """
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    traces_sample_rate = 0.1 if environment == "production" else 1.0

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=traces_sample_rate,
        integrations=[
            StarletteIntegration(),
            FastApiIntegration(),
        ],
    )


def get_metrics_response() -> Response:
    """Generate Prometheus exposition format response."""
    return Response(
        content=generate_latest(REGISTRY),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
