"""Prometheus metrics for the application.

HTTP metrics are collected by PrometheusMiddleware; pipeline metrics are
incremented by ProposalService as requests move through its stages.
"""

import time

from prometheus_client import Counter, Histogram, Info, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

APP_INFO = Info("proposal_generator", "Proposal generator build info")
APP_INFO.info({"version": "1.0.0"})

# --- HTTP ---

HTTP_REQUESTS = Counter(
    "http_requests_total",
    "HTTP requests by route template and status",
    ["method", "route", "status"],
)

HTTP_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency by route template",
    ["method", "route"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1, 2.5, 5, 10, 30, 60],
)

# --- Proposal pipeline ---

PROPOSALS_TOTAL = Counter(
    "proposals_total",
    "Proposal requests by outcome",
    ["outcome"],  # generated, cached, or an error code
)

CACHE_LOOKUPS = Counter(
    "proposal_cache_lookups_total",
    "Proposal cache lookups",
    ["result"],  # hit, miss, error
)

GATEWAY_ATTEMPTS = Counter(
    "llm_gateway_attempts_total",
    "Individual LLM gateway calls, retries included",
    ["outcome"],  # success or a GatewayErrorKind value
)

GENERATION_DURATION = Histogram(
    "proposal_generation_duration_seconds",
    "Time spent in the generating stage, retries included",
    buckets=[0.5, 1, 2.5, 5, 10, 20, 30, 60, 120],
)

_UNMATCHED_ROUTE = "unmatched"


def _route_template(request: Request) -> str:
    """Route path as declared (e.g. /api/v1/proposals/generate), never the raw URL."""
    route = request.scope.get("route")
    return getattr(route, "path", _UNMATCHED_ROUTE)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Collect HTTP request metrics for Prometheus."""

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        # The router sets scope["route"] while handling, so read it afterwards
        route = _route_template(request)
        HTTP_REQUESTS.labels(method=request.method, route=route, status=response.status_code).inc()
        HTTP_LATENCY.labels(method=request.method, route=route).observe(elapsed)
        return response


def metrics_response() -> Response:
    return Response(
        content=generate_latest(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
