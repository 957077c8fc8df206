"""Common Pydantic schemas."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    instance_id: str


class WebhookStats(BaseModel):
    """Subscription and delivery statistics."""

    subscriptions: int = 0
    enabled_subscriptions: int = 0
    deliveries: int = 0
    failed_deliveries: int = 0


class ReadyResponse(BaseModel):
    """Readiness check response."""

    status: str = "ok"
    database: str = "ok"
    webhooks: WebhookStats | None = None  # Optional delivery statistics


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class DeletedResponse(MessageResponse):
    """Response for bulk deletes."""

    deleted: int
