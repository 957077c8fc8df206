"""Operations API endpoints (health, ready, delivery logs)."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from matriz import __version__
from matriz.auth import Auth
from matriz.config import Settings, get_settings
from matriz.db.models import WebhookDeliveryLog, WebhookSubscription
from matriz.db.session import get_session
from matriz.schemas import (
    DeletedResponse,
    DeliveryLogDetailResponse,
    DeliveryLogPage,
    DeliveryLogResponse,
    HealthResponse,
    MessageResponse,
    ReadyResponse,
    WebhookStats,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["operations"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    """Health check endpoint - returns server status."""
    return HealthResponse(
        status="ok",
        version=__version__,
        instance_id=settings.instance_id,
    )


async def _get_webhook_stats(session: AsyncSession) -> WebhookStats:
    """Count subscriptions and delivery outcomes."""
    sub_stmt = select(WebhookSubscription.enabled, func.count(WebhookSubscription.id)).group_by(
        WebhookSubscription.enabled
    )
    sub_counts = {row[0]: row[1] for row in (await session.execute(sub_stmt)).fetchall()}

    log_stmt = select(WebhookDeliveryLog.success, func.count(WebhookDeliveryLog.id)).group_by(
        WebhookDeliveryLog.success
    )
    log_counts = {row[0]: row[1] for row in (await session.execute(log_stmt)).fetchall()}

    return WebhookStats(
        subscriptions=sum(sub_counts.values()),
        enabled_subscriptions=sub_counts.get(True, 0),
        deliveries=sum(log_counts.values()),
        failed_deliveries=log_counts.get(False, 0),
    )


@router.get("/ready", response_model=ReadyResponse)
async def ready_check(
    session: AsyncSession = Depends(get_session),
    include_stats: bool = Query(False, description="Include subscription and delivery statistics"),
) -> ReadyResponse:
    """Readiness check endpoint - verifies database connectivity."""
    try:
        await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not ready",
        ) from e

    response = ReadyResponse(status="ok", database="ok")
    if include_stats:
        response.webhooks = await _get_webhook_stats(session)
    return response


# Delivery Log endpoints


@router.get("/webhook-delivery-logs", response_model=DeliveryLogPage)
async def list_delivery_logs(
    auth: Auth,
    session: AsyncSession = Depends(get_session),
    subscription_id: uuid.UUID | None = Query(None),
    success: bool | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> DeliveryLogPage:
    """List delivery attempts, newest first."""
    auth.require_scope("logs:read")

    filters = []
    if subscription_id is not None:
        filters.append(WebhookDeliveryLog.subscription_id == subscription_id)
    if success is not None:
        filters.append(WebhookDeliveryLog.success == success)

    count_stmt = select(func.count(WebhookDeliveryLog.id)).where(*filters)
    total = (await session.execute(count_stmt)).scalar_one()

    stmt = (
        select(WebhookDeliveryLog)
        .where(*filters)
        .order_by(WebhookDeliveryLog.dispatched_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await session.execute(stmt)
    return DeliveryLogPage(
        items=[DeliveryLogResponse.model_validate(log) for log in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


async def _get_log_or_404(session: AsyncSession, log_id: uuid.UUID) -> WebhookDeliveryLog:
    stmt = select(WebhookDeliveryLog).where(WebhookDeliveryLog.id == log_id)
    result = await session.execute(stmt)
    log = result.scalar_one_or_none()

    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Delivery log not found",
        )
    return log


@router.get("/webhook-delivery-logs/{log_id}", response_model=DeliveryLogDetailResponse)
async def get_delivery_log(
    log_id: uuid.UUID,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> DeliveryLogDetailResponse:
    """Get a delivery log entry with request and response bodies."""
    auth.require_scope("logs:read")
    log = await _get_log_or_404(session, log_id)
    return DeliveryLogDetailResponse.model_validate(log)


@router.delete("/webhook-delivery-logs/{log_id}", response_model=MessageResponse)
async def delete_delivery_log(
    log_id: uuid.UUID,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> MessageResponse:
    """Delete one delivery log entry."""
    auth.require_scope("admin")
    log = await _get_log_or_404(session, log_id)

    await session.delete(log)
    await session.flush()
    return MessageResponse(message=f"Delivery log {log_id} deleted")


@router.delete("/webhook-delivery-logs", response_model=DeletedResponse)
async def delete_all_delivery_logs(
    auth: Auth,
    session: AsyncSession = Depends(get_session),
) -> DeletedResponse:
    """Delete every delivery log entry."""
    auth.require_scope("admin")

    result = await session.execute(delete(WebhookDeliveryLog))
    deleted = result.rowcount or 0

    logger.info(f"Deleted all delivery logs ({deleted} rows)")
    return DeletedResponse(message="Delivery logs cleared", deleted=deleted)
