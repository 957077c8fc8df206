"""Request logging middleware for API observability."""

import logging
import time
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from matriz.auth.keys import api_key_id, extract_api_key

logger = logging.getLogger("matriz.access")


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain (original client)
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs incoming HTTP requests.

    Logs:
    - Request method and path
    - Response status code
    - Response time in milliseconds
    - Client IP address
    - API key identifier (prefix only, not the full key)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        start_time = time.perf_counter()
        client_ip = get_client_ip(request)
        key_id = api_key_id(extract_api_key(request.headers)) or "none"

        response: Response = await call_next(request)

        process_time_ms = (time.perf_counter() - start_time) * 1000

        # Format: IP METHOD PATH STATUS TIME_MS KEY_PREFIX
        logger.info(
            "%s %s %s %d %.2fms key=%s",
            client_ip,
            request.method,
            request.url.path,
            response.status_code,
            process_time_ms,
            key_id,
        )

        response.headers["X-Process-Time-Ms"] = f"{process_time_ms:.2f}"
        return response
