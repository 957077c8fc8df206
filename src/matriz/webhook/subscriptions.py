"""Subscriber resolution for dispatched events."""

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from matriz.db.models import WebhookSubscription

logger = logging.getLogger(__name__)

# Subscriptions with this topic receive every event
WILDCARD_TOPIC = "generic"


class SubscriptionLookupError(Exception):
    """Raised when the subscription store cannot be queried."""


async def resolve_subscriptions(
    session: AsyncSession,
    topic: str,
) -> list[WebhookSubscription]:
    """Return enabled subscriptions for a topic or for the wildcard topic.

    Args:
        session: Database session
        topic: Event topic

    Returns:
        Matching subscriptions, in no particular order

    Raises:
        SubscriptionLookupError: If the query fails
    """
    stmt = select(WebhookSubscription).where(
        WebhookSubscription.enabled.is_(True),
        or_(
            WebhookSubscription.topic == topic,
            WebhookSubscription.topic == WILDCARD_TOPIC,
        ),
    )
    try:
        result = await session.execute(stmt)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Failed to load subscriptions for topic {topic!r}: {e}")
        raise SubscriptionLookupError(f"Erro ao buscar subscriptions: {e}") from e

    return list(result.scalars().all())
