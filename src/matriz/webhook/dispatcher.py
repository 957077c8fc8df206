"""Webhook dispatcher: fan an event out to every matching subscription."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matriz.config import Settings, get_settings
from matriz.db.models import WebhookDeliveryLog, WebhookSubscription
from matriz.http_client import get_http_client
from matriz.metrics.definitions import (
    WEBHOOK_DELIVERIES_TOTAL,
    WEBHOOK_DELIVERY_DURATION,
    WEBHOOK_DISPATCHES_TOTAL,
    WEBHOOK_LOG_WRITE_FAILURES,
)
from matriz.webhook.signing import build_headers, serialize_payload
from matriz.webhook.subscriptions import resolve_subscriptions

logger = logging.getLogger(__name__)

NO_SUBSCRIPTIONS_MESSAGE = "Nenhuma subscription ativa encontrada"
DISPATCH_REQUIRED_MESSAGE = "topic e payload são obrigatórios"


class InvalidDispatchEvent(ValueError):
    """Raised when an event has no topic or no payload."""


def validate_event(topic: Any, payload: Any) -> None:
    """Check an event before dispatch.

    The topic must be a non-empty string and the payload must not be null.
    Falsy payloads such as ``0``, ``""`` or ``{}`` are valid.
    """
    if not isinstance(topic, str) or not topic or payload is None:
        raise InvalidDispatchEvent(DISPATCH_REQUIRED_MESSAGE)



@dataclass
class DeliveryResult:
    """Outcome of one delivery attempt to one subscription."""

    subscription_id: uuid.UUID
    endpoint_url: str
    success: bool
    duration_ms: int
    status_code: int | None = None
    response_body: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the dispatch response.

        Completed requests report ``status_code``; requests that raised
        report ``error`` instead.
        """
        data: dict[str, Any] = {
            "subscription_id": str(self.subscription_id),
            "endpoint_url": self.endpoint_url,
            "success": self.success,
        }
        if self.error is not None:
            data["error"] = self.error
        else:
            data["status_code"] = self.status_code
        data["duration_ms"] = self.duration_ms
        return data


@dataclass
class DispatchSummary:
    """Aggregate outcome of one dispatch call."""

    topic: str
    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def dispatched(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def message(self) -> str:
        if not self.results:
            return NO_SUBSCRIPTIONS_MESSAGE
        return f"Webhooks disparados: {self.dispatched}/{self.total}"

    def to_response(self) -> dict[str, Any]:
        """Build the JSON body returned to the caller."""
        if not self.results:
            return {"success": True, "message": self.message, "dispatched": 0}
        return {
            "success": True,
            "message": self.message,
            "dispatched": self.dispatched,
            "total": self.total,
            "results": [r.to_dict() for r in self.results],
        }


class WebhookDispatcher:
    """Delivers an event to every enabled subscription for its topic.

    Deliveries run concurrently and each one writes its own delivery log row
    in a dedicated session. One subscriber failing never affects another.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.client = client
        self.settings = settings or get_settings()

    async def dispatch(self, topic: str, payload: Any) -> DispatchSummary:
        """Resolve subscribers, deliver to all of them and record outcomes.

        Raises:
            InvalidDispatchEvent: If the topic or payload is missing
            SubscriptionLookupError: If subscriptions cannot be loaded
        """
        validate_event(topic, payload)
        async with self.session_factory() as session:
            try:
                subscriptions = await resolve_subscriptions(session, topic)
            except Exception:
                WEBHOOK_DISPATCHES_TOTAL.labels(result="lookup_failed").inc()
                raise

        if not subscriptions:
            logger.info(f"No active subscriptions for topic {topic!r}")
            WEBHOOK_DISPATCHES_TOTAL.labels(result="no_subscribers").inc()
            return DispatchSummary(topic=topic)

        logger.info(f"Dispatching topic {topic!r} to {len(subscriptions)} subscriptions")

        outcomes = await asyncio.gather(
            *(self._attempt(subscription, payload) for subscription in subscriptions),
            return_exceptions=True,
        )

        summary = DispatchSummary(topic=topic)
        for subscription, outcome in zip(subscriptions, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"Delivery task for subscription {subscription.id} crashed: {outcome}",
                    exc_info=outcome,
                )
                outcome = DeliveryResult(
                    subscription_id=subscription.id,
                    endpoint_url=subscription.endpoint_url,
                    success=False,
                    duration_ms=0,
                    error=str(outcome) or type(outcome).__name__,
                )
            summary.results.append(outcome)

        WEBHOOK_DISPATCHES_TOTAL.labels(result="fanned_out").inc()
        logger.info(
            f"Dispatch of {topic!r} finished: {summary.dispatched}/{summary.total} delivered"
        )
        return summary

    async def _attempt(self, subscription: WebhookSubscription, payload: Any) -> DeliveryResult:
        """Deliver to one subscription, then log the attempt."""
        result = await self.deliver(subscription, payload)

        WEBHOOK_DELIVERY_DURATION.observe(result.duration_ms / 1000)
        WEBHOOK_DELIVERIES_TOTAL.labels(
            status="delivered" if result.success else "failed"
        ).inc()

        await self.record_attempt(result, payload)
        return result

    async def deliver(self, subscription: WebhookSubscription, payload: Any) -> DeliveryResult:
        """POST the payload to one subscription endpoint.

        Never raises: any failure is returned as an unsuccessful result.
        """
        start_time = time.perf_counter()
        try:
            body = serialize_payload(payload)
            headers = build_headers(
                subscription.secret,
                body,
                scheme=self.settings.webhook_signature_scheme,
                user_agent=self.settings.webhook_user_agent,
            )
            client = self.client or await get_http_client()
            response = await client.post(subscription.endpoint_url, content=body, headers=headers)
            response_text = response.text
        except Exception as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            logger.warning(f"Delivery to {subscription.endpoint_url} failed: {e!r}")
            return DeliveryResult(
                subscription_id=subscription.id,
                endpoint_url=subscription.endpoint_url,
                success=False,
                duration_ms=duration_ms,
                error=str(e) or type(e).__name__,
            )

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            f"Delivered to {subscription.endpoint_url} "
            f"({duration_ms}ms, status: {response.status_code})"
        )
        return DeliveryResult(
            subscription_id=subscription.id,
            endpoint_url=subscription.endpoint_url,
            success=response.is_success,
            duration_ms=duration_ms,
            status_code=response.status_code,
            response_body=response_text,
        )

    async def record_attempt(self, result: DeliveryResult, payload: Any) -> bool:
        """Write the delivery log row for an attempt.

        Returns:
            True if the row was written. A failed write is logged and does
            not change the delivery outcome.
        """
        log = WebhookDeliveryLog(
            subscription_id=result.subscription_id,
            success=result.success,
            status_code=result.status_code,
            request_body=payload,
            response_body=result.response_body,
            error_message=result.error,
            attempt=1,
            duration_ms=result.duration_ms,
        )
        try:
            async with self.session_factory() as session:
                session.add(log)
                await session.commit()
        except Exception:
            WEBHOOK_LOG_WRITE_FAILURES.inc()
            logger.exception(
                f"Failed to write delivery log for subscription {result.subscription_id}"
            )
            return False
        return True
