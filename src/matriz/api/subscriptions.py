"""Webhook subscription management API endpoints."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from matriz.auth import Auth
from matriz.db.models import WebhookSubscription
from matriz.db.session import get_session
from matriz.schemas import (
    MessageResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook-subscriptions", tags=["webhook-subscriptions"])


async def _get_subscription_or_404(
    session: AsyncSession,
    subscription_id: uuid.UUID,
) -> WebhookSubscription:
    stmt = select(WebhookSubscription).where(WebhookSubscription.id == subscription_id)
    result = await session.execute(stmt)
    subscription = result.scalar_one_or_none()

    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found",
        )
    return subscription


@router.get("", response_model=list[SubscriptionResponse])
async def list_subscriptions(
    auth: Auth,
    session: AsyncSession = Depends(get_session),
    topic: str | None = Query(None),
    enabled: bool | None = Query(None),
) -> list[SubscriptionResponse]:
    """List subscriptions, newest first."""
    auth.require_scope("webhooks:read")

    stmt = select(WebhookSubscription).order_by(WebhookSubscription.created_at.desc())
    if topic is not None:
        stmt = stmt.where(WebhookSubscription.topic == topic)
    if enabled is not None:
        stmt = stmt.where(WebhookSubscription.enabled == enabled)

    result = await session.execute(stmt)
    return [SubscriptionResponse.model_validate(s) for s in result.scalars().all()]


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> SubscriptionResponse:
    """Register a new subscriber endpoint."""
    auth.require_scope("webhooks:write")

    subscription = WebhookSubscription(
        endpoint_url=str(data.endpoint_url),
        secret=data.secret or None,
        topic=data.topic,
        enabled=data.enabled,
    )
    session.add(subscription)
    await session.flush()
    await session.refresh(subscription)

    logger.info(f"Created subscription {subscription.id} for topic {subscription.topic!r}")
    return SubscriptionResponse.model_validate(subscription)


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: uuid.UUID,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> SubscriptionResponse:
    """Get a subscription by ID."""
    auth.require_scope("webhooks:read")
    subscription = await _get_subscription_or_404(session, subscription_id)
    return SubscriptionResponse.model_validate(subscription)


@router.put("/{subscription_id}", response_model=SubscriptionResponse)
async def update_subscription(
    subscription_id: uuid.UUID,
    data: SubscriptionUpdate,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> SubscriptionResponse:
    """Update a subscription. Only the fields sent are changed."""
    auth.require_scope("webhooks:write")
    subscription = await _get_subscription_or_404(session, subscription_id)

    update_data = data.model_dump(exclude_unset=True)
    if "endpoint_url" in update_data:
        if update_data["endpoint_url"] is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="endpoint_url cannot be null",
            )
        update_data["endpoint_url"] = str(data.endpoint_url)
    if "secret" in update_data:
        update_data["secret"] = update_data["secret"] or None
    for field in ("topic", "enabled"):
        if field in update_data and update_data[field] is None:
            del update_data[field]

    for field, value in update_data.items():
        setattr(subscription, field, value)

    await session.flush()
    await session.refresh(subscription)
    return SubscriptionResponse.model_validate(subscription)


@router.patch("/{subscription_id}/toggle", response_model=SubscriptionResponse)
async def toggle_subscription(
    subscription_id: uuid.UUID,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> SubscriptionResponse:
    """Flip a subscription between enabled and disabled."""
    auth.require_scope("webhooks:write")
    subscription = await _get_subscription_or_404(session, subscription_id)

    subscription.enabled = not subscription.enabled
    await session.flush()
    await session.refresh(subscription)

    logger.info(
        f"Subscription {subscription.id} {'enabled' if subscription.enabled else 'disabled'}"
    )
    return SubscriptionResponse.model_validate(subscription)


@router.delete("/{subscription_id}", response_model=MessageResponse)
async def delete_subscription(
    subscription_id: uuid.UUID,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Delete a subscription. Its delivery logs are kept."""
    auth.require_scope("webhooks:write")
    subscription = await _get_subscription_or_404(session, subscription_id)

    await session.delete(subscription)
    await session.flush()

    return MessageResponse(message=f"Subscription {subscription_id} deleted")
