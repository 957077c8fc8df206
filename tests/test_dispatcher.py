"""Tests for subscriber resolution and the webhook dispatcher."""

import json
import uuid
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from matriz.config import Settings
from matriz.db.models import WebhookDeliveryLog
from matriz.webhook import (
    SIGNATURE_HEADER,
    DeliveryResult,
    DispatchSummary,
    InvalidDispatchEvent,
    SubscriptionLookupError,
    WebhookDispatcher,
    compute_signature,
    resolve_subscriptions,
    serialize_payload,
)


async def _logs(session_factory) -> list[WebhookDeliveryLog]:
    async with session_factory() as session:
        result = await session.execute(select(WebhookDeliveryLog))
        return list(result.scalars().all())


class TestResolveSubscriptions:
    """Tests for subscriber resolution."""

    @pytest.mark.asyncio
    async def test_exact_and_generic_match(self, test_session, add_subscription):
        exact = await add_subscription("order.created", "https://a.example.com/hook")
        generic = await add_subscription("generic", "https://b.example.com/hook")
        await add_subscription("order.cancelled", "https://c.example.com/hook")

        subs = await resolve_subscriptions(test_session, "order.created")
        assert {s.id for s in subs} == {exact.id, generic.id}

    @pytest.mark.asyncio
    async def test_disabled_excluded(self, test_session, add_subscription):
        await add_subscription("order.created", "https://a.example.com/hook", enabled=False)
        await add_subscription("generic", "https://b.example.com/hook", enabled=False)

        assert await resolve_subscriptions(test_session, "order.created") == []

    @pytest.mark.asyncio
    async def test_topic_match_is_exact(self, test_session, add_subscription):
        await add_subscription("order", "https://a.example.com/hook")
        await add_subscription("Order.Created", "https://b.example.com/hook")

        assert await resolve_subscriptions(test_session, "order.created") == []

    @pytest.mark.asyncio
    async def test_generic_topic_receives_generic_only_once(self, test_session, add_subscription):
        sub = await add_subscription("generic", "https://a.example.com/hook")

        subs = await resolve_subscriptions(test_session, "generic")
        assert [s.id for s in subs] == [sub.id]

    @pytest.mark.asyncio
    async def test_store_failure_raises_lookup_error(self, test_session):
        with patch.object(
            test_session,
            "execute",
            AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down"))),
        ):
            with pytest.raises(SubscriptionLookupError, match="Erro ao buscar subscriptions"):
                await resolve_subscriptions(test_session, "order.created")


class TestDispatchSummary:
    def test_empty(self):
        summary = DispatchSummary(topic="x")
        assert summary.to_response() == {
            "success": True,
            "message": "Nenhuma subscription ativa encontrada",
            "dispatched": 0,
        }

    def test_counts_and_message(self):
        ok = DeliveryResult(uuid.uuid4(), "https://a", True, 10, status_code=200)
        failed = DeliveryResult(uuid.uuid4(), "https://b", False, 5, error="Connection refused")
        summary = DispatchSummary(topic="x", results=[ok, failed])

        response = summary.to_response()
        assert response["dispatched"] == 1
        assert response["total"] == 2
        assert response["message"] == "Webhooks disparados: 1/2"
        assert response["results"][0]["status_code"] == 200
        assert "error" not in response["results"][0]
        assert response["results"][1]["error"] == "Connection refused"
        assert "status_code" not in response["results"][1]


class TestWebhookDispatcher:
    """Tests for fan-out delivery and outcome recording."""

    @pytest.mark.asyncio
    async def test_no_subscriptions(self, session_factory, test_settings, mock_http):
        dispatcher = WebhookDispatcher(session_factory, settings=test_settings)
        summary = await dispatcher.dispatch("order.created", {"id": 1})

        assert summary.total == 0
        assert summary.message == "Nenhuma subscription ativa encontrada"
        assert mock_http.calls.call_count == 0
        assert await _logs(session_factory) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("topic", "payload"), [("", {"id": 1}), ("order.created", None)])
    async def test_missing_topic_or_payload(
        self, session_factory, test_settings, add_subscription, mock_http, topic, payload
    ):
        await add_subscription("generic", "https://a.example.com/hook")

        dispatcher = WebhookDispatcher(session_factory, settings=test_settings)
        with pytest.raises(InvalidDispatchEvent, match="topic e payload são obrigatórios"):
            await dispatcher.dispatch(topic, payload)

        assert mock_http.calls.call_count == 0
        assert await _logs(session_factory) == []

    @pytest.mark.asyncio
    async def test_non_finite_payload_is_failed_delivery(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        await add_subscription("order.created", "https://a.example.com/hook", secret="s")
        route = mock_http.post("https://a.example.com/hook").mock(
            return_value=httpx.Response(200)
        )

        summary = await WebhookDispatcher(session_factory, settings=test_settings).dispatch(
            "order.created", {"x": float("nan")}
        )

        assert summary.dispatched == 0
        result = summary.results[0]
        assert result.success is False
        assert "JSON compliant" in result.error
        assert not route.called

    @pytest.mark.asyncio
    async def test_delivers_payload_verbatim(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        sub = await add_subscription("order.created", "https://a.example.com/hook")
        route = mock_http.post("https://a.example.com/hook").mock(
            return_value=httpx.Response(200, text="ok")
        )
        payload = {"id": 7, "cliente": "João", "itens": [1, 2]}

        dispatcher = WebhookDispatcher(session_factory, settings=test_settings)
        summary = await dispatcher.dispatch("order.created", payload)

        assert summary.dispatched == 1
        request = route.calls.last.request
        assert request.content == serialize_payload(payload)
        assert json.loads(request.content) == payload
        assert request.headers["Content-Type"] == "application/json"
        assert SIGNATURE_HEADER not in request.headers

        logs = await _logs(session_factory)
        assert len(logs) == 1
        log = logs[0]
        assert log.subscription_id == sub.id
        assert log.success is True
        assert log.status_code == 200
        assert log.response_body == "ok"
        assert log.error_message is None
        assert log.attempt == 1
        assert log.request_body == payload

    @pytest.mark.asyncio
    async def test_signature_header(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        await add_subscription("order.created", "https://a.example.com/hook", secret="s3cret")
        route = mock_http.post("https://a.example.com/hook").mock(
            return_value=httpx.Response(204)
        )
        payload = {"id": 7}

        dispatcher = WebhookDispatcher(session_factory, settings=test_settings)
        await dispatcher.dispatch("order.created", payload)

        request = route.calls.last.request
        assert request.headers[SIGNATURE_HEADER] == compute_signature(
            "s3cret", serialize_payload(payload)
        )

    @pytest.mark.asyncio
    async def test_hmac_scheme_setting(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        settings = test_settings.model_copy(update={"webhook_signature_scheme": "hmac-sha256"})
        await add_subscription("order.created", "https://a.example.com/hook", secret="s3cret")
        route = mock_http.post("https://a.example.com/hook").mock(
            return_value=httpx.Response(200)
        )

        await WebhookDispatcher(session_factory, settings=settings).dispatch(
            "order.created", {"id": 7}
        )

        request = route.calls.last.request
        assert request.headers[SIGNATURE_HEADER] == compute_signature(
            "s3cret", b'{"id":7}', scheme="hmac-sha256"
        )

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure_with_status(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        await add_subscription("order.created", "https://a.example.com/hook")
        mock_http.post("https://a.example.com/hook").mock(
            return_value=httpx.Response(500, text="boom")
        )

        summary = await WebhookDispatcher(session_factory, settings=test_settings).dispatch(
            "order.created", {"id": 1}
        )

        result = summary.results[0]
        assert result.success is False
        assert result.status_code == 500
        assert result.error is None

        log = (await _logs(session_factory))[0]
        assert log.success is False
        assert log.status_code == 500
        assert log.response_body == "boom"

    @pytest.mark.asyncio
    async def test_network_error_recorded(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        await add_subscription("order.created", "https://down.example.com/hook")
        mock_http.post("https://down.example.com/hook").mock(
            side_effect=httpx.ConnectError("Connection refused")
        )

        summary = await WebhookDispatcher(session_factory, settings=test_settings).dispatch(
            "order.created", {"id": 1}
        )

        result = summary.results[0]
        assert result.success is False
        assert result.status_code is None
        assert result.error == "Connection refused"

        log = (await _logs(session_factory))[0]
        assert log.success is False
        assert log.status_code is None
        assert log.response_body is None
        assert log.error_message == "Connection refused"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        await add_subscription("order.created", "https://a.example.com/hook")
        await add_subscription("generic", "https://b.example.com/hook")
        await add_subscription("order.created", "https://c.example.com/hook")
        mock_http.post("https://a.example.com/hook").mock(return_value=httpx.Response(200))
        mock_http.post("https://b.example.com/hook").mock(side_effect=httpx.ReadTimeout("timed out"))
        mock_http.post("https://c.example.com/hook").mock(return_value=httpx.Response(201))

        summary = await WebhookDispatcher(session_factory, settings=test_settings).dispatch(
            "order.created", {"id": 1}
        )

        assert summary.total == 3
        assert summary.dispatched == 2
        assert summary.message == "Webhooks disparados: 2/3"
        assert len(await _logs(session_factory)) == 3

    @pytest.mark.asyncio
    async def test_log_write_failure_keeps_delivery_outcome(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        await add_subscription("order.created", "https://a.example.com/hook")
        mock_http.post("https://a.example.com/hook").mock(return_value=httpx.Response(200))

        dispatcher = WebhookDispatcher(session_factory, settings=test_settings)
        with patch.object(dispatcher, "record_attempt", AsyncMock(return_value=False)) as record:
            summary = await dispatcher.dispatch("order.created", {"id": 1})

        record.assert_awaited_once()
        assert summary.dispatched == 1
        assert summary.results[0].success is True

    @pytest.mark.asyncio
    async def test_record_attempt_swallows_storage_errors(self, test_settings):
        def broken_factory():
            raise OperationalError("INSERT", {}, Exception("disk full"))

        dispatcher = WebhookDispatcher(broken_factory, settings=test_settings)
        result = DeliveryResult(uuid.uuid4(), "https://a", True, 3, status_code=200)

        assert await dispatcher.record_attempt(result, {"id": 1}) is False

    @pytest.mark.asyncio
    async def test_crashed_task_becomes_failed_result(
        self, session_factory, test_settings, add_subscription, mock_http
    ):
        await add_subscription("order.created", "https://a.example.com/hook")

        dispatcher = WebhookDispatcher(session_factory, settings=test_settings)
        with patch.object(dispatcher, "deliver", AsyncMock(side_effect=RuntimeError("bug"))):
            summary = await dispatcher.dispatch("order.created", {"id": 1})

        assert summary.total == 1
        assert summary.dispatched == 0
        assert summary.results[0].error == "bug"

    @pytest.mark.asyncio
    async def test_injected_client_used(self, session_factory, add_subscription):
        await add_subscription("order.created", "https://a.example.com/hook")
        response = httpx.Response(200, text="ok", request=httpx.Request("POST", "https://a"))
        client = AsyncMock(spec=httpx.AsyncClient)
        client.post = AsyncMock(return_value=response)

        settings = Settings(service_role_key="k" * 16, database_url="sqlite+aiosqlite://")
        dispatcher = WebhookDispatcher(session_factory, client=client, settings=settings)
        summary = await dispatcher.dispatch("order.created", [1, 2, 3])

        assert summary.dispatched == 1
        kwargs = client.post.call_args.kwargs
        assert kwargs["content"] == b"[1,2,3]"
