"""Pydantic schemas for the management API."""

from matriz.schemas.common import (
    DeletedResponse,
    HealthResponse,
    MessageResponse,
    ReadyResponse,
    WebhookStats,
)
from matriz.schemas.notification import (
    NotificationCredentialsResponse,
    NotificationCredentialsUpdate,
)
from matriz.schemas.webhook import (
    DeliveryLogDetailResponse,
    DeliveryLogPage,
    DeliveryLogResponse,
    SubscriptionCreate,
    SubscriptionResponse,
    SubscriptionUpdate,
)

__all__ = [
    "DeletedResponse",
    "DeliveryLogDetailResponse",
    "DeliveryLogPage",
    "DeliveryLogResponse",
    "HealthResponse",
    "MessageResponse",
    "NotificationCredentialsResponse",
    "NotificationCredentialsUpdate",
    "ReadyResponse",
    "SubscriptionCreate",
    "SubscriptionResponse",
    "SubscriptionUpdate",
    "WebhookStats",
]
