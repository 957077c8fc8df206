"""CORS handling for the browser-invoked function endpoints."""

from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

FUNCTIONS_PREFIX = "/functions/v1/"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
}


class FunctionCORSMiddleware(BaseHTTPMiddleware):
    """Answer preflight requests and add CORS headers under ``/functions/v1``.

    Any ``OPTIONS`` request is answered with 200 and an empty body before
    authentication or routing runs.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not request.url.path.startswith(FUNCTIONS_PREFIX):
            return await call_next(request)

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)

        response: Response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response
