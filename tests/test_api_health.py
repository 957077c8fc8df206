"""Tests for health, readiness and metrics endpoints."""

import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from starlette.requests import Request

from matriz import __version__
from matriz.metrics.middleware import _endpoint_label


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient):
    """Health works without authentication."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["instance_id"] == "test-instance"


@pytest.mark.asyncio
async def test_ready_endpoint(client: AsyncClient):
    response = await client.get("/api/v1/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok", "webhooks": None}


@pytest.mark.asyncio
async def test_ready_with_stats(client: AsyncClient, add_subscription, session_factory):
    from matriz.db.models import WebhookDeliveryLog

    sub = await add_subscription("t", "https://a.example.com/hook")
    await add_subscription("t", "https://b.example.com/hook", enabled=False)
    async with session_factory() as session:
        session.add(WebhookDeliveryLog(subscription_id=sub.id, success=True, status_code=200))
        session.add(WebhookDeliveryLog(subscription_id=sub.id, success=False, status_code=500))
        await session.commit()

    response = await client.get("/api/v1/ready", params={"include_stats": "true"})
    assert response.status_code == 200
    assert response.json()["webhooks"] == {
        "subscriptions": 2,
        "enabled_subscriptions": 1,
        "deliveries": 2,
        "failed_deliveries": 1,
    }


@pytest.mark.asyncio
async def test_ready_database_down(client: AsyncClient):
    with patch(
        "sqlalchemy.ext.asyncio.AsyncSession.execute",
        AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("down"))),
    ):
        response = await client.get("/api/v1/ready")

    assert response.status_code == 503
    assert response.json() == {"detail": "Database not ready"}


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient):
    await client.get("/api/v1/webhook-subscriptions")

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "matriz_requests_total" in response.text
    assert 'endpoint="/api/v1/webhook-subscriptions"' in response.text


@pytest.mark.asyncio
async def test_request_logging(client: AsyncClient, caplog):
    with caplog.at_level(logging.INFO, logger="matriz.access"):
        response = await client.get(
            "/api/v1/health",
            headers={"X-Forwarded-For": "198.51.100.7, 10.0.0.1", "X-API-Key": "mtz_abcdefghijklmnop"},
        )

    assert "X-Process-Time-Ms" in response.headers
    [record] = [r for r in caplog.records if r.name == "matriz.access"]
    message = record.getMessage()
    assert message.startswith("198.51.100.7 GET /api/v1/health 200 ")
    assert message.endswith("key=mtz_abcdefgh")


@pytest.mark.parametrize(
    ("path", "template", "expected"),
    [
        ("/api/v1/ready", "/api/v1/ready", "/api/v1/ready"),
        ("/functions/v1/cep-lookup", "/cep-lookup", "/functions/v1/cep-lookup"),
        (
            "/api/v1/webhook-subscriptions/0b6c",
            "/webhook-subscriptions/{subscription_id}",
            "/api/v1/webhook-subscriptions/{subscription_id}",
        ),
        ("/api/v1/webhook-delivery-logs/", "", "/api/v1/webhook-delivery-logs"),
        ("/unknown/", None, "/unknown"),
    ],
)
def test_endpoint_label_includes_router_prefix(path, template, expected):
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "server": ("test", 80),
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [],
    }
    if template is not None:
        scope["route"] = SimpleNamespace(path=template)

    assert _endpoint_label(Request(scope)) == expected
