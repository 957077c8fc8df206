"""Prometheus metrics middleware for FastAPI."""

import time
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from matriz.metrics.definitions import REQUEST_DURATION, REQUEST_TOTAL


def _endpoint_label(request: Request) -> str:
    """Label requests by route template to keep cardinality bounded."""
    path = request.url.path
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/")

    route = request.scope.get("route")
    template = getattr(route, "path", None)
    if not template:
        return path

    # Routes from included routers may report a template without the prefix
    template = template.rstrip("/")
    depth = template.count("/")
    if depth == 0:
        return path
    segments = path.split("/")
    prefix = "/".join(segments[: max(len(segments) - depth, 0)])
    return prefix + template


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collects request count and duration for every HTTP request.

    Health probes and the metrics endpoint itself are not counted.
    """

    EXCLUDED_PATHS = {"/metrics", "/api/v1/health", "/api/v1/ready"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response: Response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = _endpoint_label(request)
        REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

        return response
