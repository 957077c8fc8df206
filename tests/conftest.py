"""Pytest configuration and fixtures for matriz tests."""

import os
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

SERVICE_KEY = "test_service_role_key_12345"
ANON_KEY = "test_anon_key_1234567890"

# Set required environment variables before any imports
os.environ.setdefault("MATRIZ_SERVICE_ROLE_KEY", SERVICE_KEY)
os.environ.setdefault("MATRIZ_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest_asyncio
import respx
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from matriz.config import Settings, clear_settings_cache, get_settings
from matriz.db.models import Base, WebhookSubscription
from matriz.db.session import get_session, get_session_factory
from matriz.http_client import close_http_client
from matriz.main import create_app


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """A fresh SQLite file per test (concurrent sessions need separate connections)."""
    return f"sqlite+aiosqlite:///{tmp_path / 'matriz.db'}"


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    """Create test settings with a SQLite database."""
    clear_settings_cache()
    return Settings(
        database_url=database_url,
        service_role_key=SERVICE_KEY,
        anon_key=ANON_KEY,
        api_host="127.0.0.1",
        api_port=18000,
        instance_id="test-instance",
        rate_limit_enabled=False,
        redis_url=None,
        zapi_instance_id=None,
        zapi_instance_token=None,
        zapi_client_token=None,
        brevo_api_key=None,
        sms_workspace_id=None,
        sms_channel_id=None,
        sms_access_key=None,
        sms_hook_secret=None,
        encryption_key=None,
    )


@pytest_asyncio.fixture
async def test_engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with fresh tables."""
    engine = create_async_engine(test_settings.database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def _reset_http_client() -> AsyncGenerator[None, None]:
    """The shared outbound client is bound to one event loop; drop it after each test."""
    yield
    await close_http_client()


@pytest.fixture
def mock_http():
    """Mock outbound HTTP. Requests without a matching route fail."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


def build_app(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> FastAPI:
    application = create_app(settings)

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session
            await session.commit()

    application.dependency_overrides[get_session] = override_get_session
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest_asyncio.fixture
async def app(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[FastAPI, None]:
    """Create test FastAPI application."""
    application = build_app(test_settings, session_factory)
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create unauthenticated test HTTP client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def auth_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a client authenticated with the service key."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-API-Key": SERVICE_KEY},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def anon_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a client authenticated the way the browser app is (anon key)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"apikey": ANON_KEY, "Authorization": f"Bearer {ANON_KEY}"},
    ) as ac:
        yield ac


@pytest.fixture
def add_subscription(session_factory: async_sessionmaker[AsyncSession]):
    """Insert a subscription and return it."""

    async def _add(
        topic: str,
        endpoint_url: str,
        secret: str | None = None,
        enabled: bool = True,
    ) -> WebhookSubscription:
        async with session_factory() as session:
            sub = WebhookSubscription(
                topic=topic,
                endpoint_url=endpoint_url,
                secret=secret,
                enabled=enabled,
            )
            session.add(sub)
            await session.commit()
            await session.refresh(sub)
            return sub

    return _add


@pytest.fixture
def client_for(session_factory: async_sessionmaker[AsyncSession]):
    """Build a client for an app running with custom settings."""

    @asynccontextmanager
    async def _client(
        settings: Settings,
        headers: dict[str, str] | None = None,
    ) -> AsyncIterator[AsyncClient]:
        application = build_app(settings, session_factory)
        async with AsyncClient(
            transport=ASGITransport(app=application),
            base_url="http://test",
            headers={"X-API-Key": SERVICE_KEY} if headers is None else headers,
        ) as ac:
            yield ac

    return _client
