"""Matriz middleware modules."""

from matriz.middleware.cors import FunctionCORSMiddleware
from matriz.middleware.logging import RequestLoggingMiddleware
from matriz.middleware.rate_limit import RateLimitMiddleware, close_redis_client, get_redis_client

__all__ = [
    "FunctionCORSMiddleware",
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "close_redis_client",
    "get_redis_client",
]
