"""Matriz main application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from matriz import __version__
from matriz.api.router import api_router, functions_router
from matriz.cleanup import CleanupWorker
from matriz.config import Settings, get_settings
from matriz.db.session import close_engine
from matriz.http_client import close_http_client
from matriz.metrics import MetricsMiddleware
from matriz.middleware import (
    FunctionCORSMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    close_redis_client,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    worker = CleanupWorker(app.state.settings)
    worker.start()
    yield
    await worker.stop()
    await close_http_client()
    await close_redis_client()
    await close_engine()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override for testing. If not provided,
                  default settings will be loaded from environment.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Matriz",
        description="Franchise back-office webhook dispatcher and notification functions",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings

    # Middleware added last runs first: CORS preflights are answered before
    # rate limiting, metrics or logging see the request.
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    if settings.redis_url and settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware)

    # Management API CORS only if origins are configured
    if settings.cors_origins:
        # Don't allow credentials with wildcard origins (security risk)
        allow_credentials = "*" not in settings.cors_origins
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=allow_credentials,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(FunctionCORSMiddleware)

    app.include_router(api_router)
    app.include_router(functions_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app
