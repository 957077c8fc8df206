"""Rate limiting for the function endpoints using a Redis/Valkey backend."""

import logging
import time
from collections.abc import Callable

import redis.asyncio as redis
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from matriz.auth.keys import api_key_id, extract_api_key
from matriz.config import get_settings
from matriz.middleware.logging import get_client_ip

logger = logging.getLogger(__name__)

RATE_LIMITED_PREFIX = "/functions/v1/"

# Module-level Redis client
_redis_client: redis.Redis | None = None


async def get_redis_client() -> redis.Redis | None:
    """Get or create Redis client (lazy initialization)."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        if settings.redis_url:
            try:
                _redis_client = redis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=False,
                )
            except (ValueError, redis.RedisError) as e:
                logger.warning(f"Failed to create Redis client: {e}")
                return None
    return _redis_client


async def close_redis_client() -> None:
    """Close the Redis client."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window rate limiting for ``/functions/v1`` calls.

    Rate limits:
    - Calls with an API key: per key (default 120/min)
    - Calls without a key (e.g. signed hook requests): per IP (default 10/min)

    Preflight requests and the management API are never limited. When
    Redis is unreachable requests are allowed through.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with rate limiting."""
        settings = get_settings()

        if not settings.rate_limit_enabled or not settings.redis_url:
            return await call_next(request)

        if request.method == "OPTIONS" or not request.url.path.startswith(RATE_LIMITED_PREFIX):
            return await call_next(request)

        redis_client = await get_redis_client()
        if redis_client is None:
            return await call_next(request)

        key_id = api_key_id(extract_api_key(request.headers))
        if key_id:
            rate_key = f"rate_limit:key:{key_id}"
            limit = settings.rate_limit_requests_per_minute
        else:
            rate_key = f"rate_limit:ip:{get_client_ip(request)}"
            limit = settings.rate_limit_anonymous_per_minute

        try:
            current = await redis_client.get(rate_key)
            current_count = int(current) if current else 0

            if current_count >= limit:
                reset_time = await redis_client.ttl(rate_key)
                if reset_time < 0:
                    reset_time = 60

                return JSONResponse(
                    status_code=429,
                    content={"error": "Rate limit exceeded", "retry_after": reset_time},
                    headers={
                        "Retry-After": str(reset_time),
                        "X-RateLimit-Limit": str(limit),
                        "X-RateLimit-Remaining": "0",
                        "X-RateLimit-Reset": str(int(time.time()) + reset_time),
                    },
                )

            pipe = redis_client.pipeline()
            pipe.incr(rate_key)
            pipe.expire(rate_key, 60)  # 1 minute window
            await pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Rate limiting error: {e}")
            return await call_next(request)

        remaining = max(0, limit - current_count - 1)
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(int(time.time()) + 60)
        return response
