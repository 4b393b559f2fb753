"""Prometheus metrics and the middleware that records request counts/latency."""

import time

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
http_request_duration_seconds = Histogram("http_request_duration_seconds", "HTTP request duration", ["method", "endpoint"])
orders_total = Counter("orders_total", "Total orders", ["status"])
revenue_total = Counter("revenue_total_usd", "Total revenue in USD")
weekend_offer_runs_total = Counter("weekend_offer_runs_total", "Weekend offer toggle runs", ["action", "status"])


def _endpoint_label(request: Request) -> str:
    # Use the route template (/api/products/{product_id}) to keep label cardinality bounded
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        finally:
            endpoint = _endpoint_label(request)
            http_requests_total.labels(method=request.method, endpoint=endpoint, status=status).inc()
            http_request_duration_seconds.labels(method=request.method, endpoint=endpoint).observe(
                time.perf_counter() - start_time
            )
