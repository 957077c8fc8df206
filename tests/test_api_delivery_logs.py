"""Tests for the delivery log API."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from matriz.db.models import WebhookDeliveryLog

BASE = "/api/v1/webhook-delivery-logs"


@pytest.fixture
def add_log(session_factory):
    """Insert a delivery log row and return it."""

    async def _add(
        subscription_id: uuid.UUID | None = None,
        success: bool = True,
        minutes_ago: int = 0,
        **fields,
    ) -> WebhookDeliveryLog:
        async with session_factory() as session:
            log = WebhookDeliveryLog(
                subscription_id=subscription_id,
                success=success,
                status_code=fields.pop("status_code", 200 if success else 500),
                dispatched_at=datetime.now(UTC) - timedelta(minutes=minutes_ago),
                **fields,
            )
            session.add(log)
            await session.commit()
            await session.refresh(log)
            return log

    return _add


class TestListDeliveryLogs:
    @pytest.mark.asyncio
    async def test_newest_first(self, auth_client: AsyncClient, add_log):
        old = await add_log(minutes_ago=10)
        new = await add_log(minutes_ago=1)

        response = await auth_client.get(BASE)
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 2
        assert data["limit"] == 50
        assert data["offset"] == 0
        assert [item["id"] for item in data["items"]] == [str(new.id), str(old.id)]
        assert "request_body" not in data["items"][0]

    @pytest.mark.asyncio
    async def test_pagination(self, auth_client: AsyncClient, add_log):
        for minutes in range(5):
            await add_log(minutes_ago=minutes)

        data = (await auth_client.get(BASE, params={"limit": 2, "offset": 2})).json()
        assert data["total"] == 5
        assert len(data["items"]) == 2

    @pytest.mark.asyncio
    async def test_filters(self, auth_client: AsyncClient, add_subscription, add_log):
        sub = await add_subscription("t", "https://a.example.com/hook")
        await add_log(subscription_id=sub.id, success=True)
        await add_log(subscription_id=sub.id, success=False)
        await add_log(success=False)

        by_sub = (await auth_client.get(BASE, params={"subscription_id": str(sub.id)})).json()
        assert by_sub["total"] == 2

        failed = (await auth_client.get(BASE, params={"success": "false"})).json()
        assert failed["total"] == 2
        assert all(item["success"] is False for item in failed["items"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 501])
    async def test_limit_bounds(self, auth_client: AsyncClient, limit: int):
        response = await auth_client.get(BASE, params={"limit": limit})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_anon_key_forbidden(self, anon_client: AsyncClient):
        response = await anon_client.get(BASE)
        assert response.status_code == 403


class TestGetDeliveryLog:
    @pytest.mark.asyncio
    async def test_detail_includes_bodies(self, auth_client: AsyncClient, add_log):
        log = await add_log(
            success=False,
            status_code=502,
            request_body={"id": 1, "nome": "Unidade Centro"},
            response_body="Bad Gateway",
            error_message=None,
        )

        response = await auth_client.get(f"{BASE}/{log.id}")
        assert response.status_code == 200

        data = response.json()
        assert data["request_body"] == {"id": 1, "nome": "Unidade Centro"}
        assert data["response_body"] == "Bad Gateway"
        assert data["status_code"] == 502

    @pytest.mark.asyncio
    async def test_not_found(self, auth_client: AsyncClient):
        response = await auth_client.get(f"{BASE}/{uuid.uuid4()}")
        assert response.status_code == 404


class TestDeleteDeliveryLogs:
    @pytest.mark.asyncio
    async def test_delete_one(self, auth_client: AsyncClient, add_log, session_factory):
        log = await add_log()
        keep = await add_log()

        response = await auth_client.delete(f"{BASE}/{log.id}")
        assert response.status_code == 200

        async with session_factory() as session:
            ids = (await session.execute(select(WebhookDeliveryLog.id))).scalars().all()
        assert ids == [keep.id]

    @pytest.mark.asyncio
    async def test_delete_all(self, auth_client: AsyncClient, add_log, session_factory):
        for _ in range(3):
            await add_log()

        response = await auth_client.delete(BASE)
        assert response.status_code == 200
        assert response.json()["deleted"] == 3

        async with session_factory() as session:
            count = (await session.execute(select(func.count(WebhookDeliveryLog.id)))).scalar_one()
        assert count == 0

    @pytest.mark.asyncio
    async def test_anon_key_cannot_delete(self, anon_client: AsyncClient, add_log):
        log = await add_log()

        assert (await anon_client.delete(f"{BASE}/{log.id}")).status_code == 403
        assert (await anon_client.delete(BASE)).status_code == 403


class TestSubscriptionDeletion:
    @pytest.mark.asyncio
    async def test_logs_survive_subscription_delete(
        self, auth_client: AsyncClient, add_subscription, add_log
    ):
        sub = await add_subscription("t", "https://a.example.com/hook")
        log = await add_log(subscription_id=sub.id)

        assert (
            await auth_client.delete(f"/api/v1/webhook-subscriptions/{sub.id}")
        ).status_code == 200

        response = await auth_client.get(f"{BASE}/{log.id}")
        assert response.status_code == 200
