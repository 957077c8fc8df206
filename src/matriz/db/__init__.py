"""Database module."""

from matriz.db.models import (
    Base,
    Communication,
    NotificationCredentials,
    WebhookDeliveryLog,
    WebhookSubscription,
)
from matriz.db.session import async_session, get_session, get_session_factory

__all__ = [
    "Base",
    "Communication",
    "NotificationCredentials",
    "WebhookDeliveryLog",
    "WebhookSubscription",
    "async_session",
    "get_session",
    "get_session_factory",
]
