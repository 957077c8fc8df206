"""Shared outbound HTTP client."""

import asyncio

import httpx

from matriz.config import get_settings

# Module-level HTTP client for connection reuse
_http_client: httpx.AsyncClient | None = None
_http_client_lock = asyncio.Lock()


async def get_http_client() -> httpx.AsyncClient:
    """Get or create the shared HTTP client (thread-safe)."""
    global _http_client
    if _http_client is None:
        async with _http_client_lock:
            # Double-check after acquiring lock
            if _http_client is None:
                settings = get_settings()
                _http_client = httpx.AsyncClient(
                    timeout=settings.webhook_timeout,
                    limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                )
    return _http_client


async def close_http_client() -> None:
    """Close the shared HTTP client."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
