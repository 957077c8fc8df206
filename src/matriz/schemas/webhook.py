"""Webhook subscription and delivery log Pydantic schemas."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, computed_field


class SubscriptionBase(BaseModel):
    """Base subscription schema."""

    topic: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Event name to receive, or 'generic' to receive every event",
    )
    enabled: bool = True


class SubscriptionCreate(SubscriptionBase):
    """Schema for creating a subscription."""

    endpoint_url: HttpUrl
    secret: str | None = Field(
        None,
        description="Shared secret used to sign deliveries (X-Webhook-Signature)",
    )


class SubscriptionUpdate(BaseModel):
    """Schema for updating a subscription. Omitted fields are unchanged."""

    endpoint_url: HttpUrl | None = None
    secret: str | None = Field(None, description="New secret. Send an empty string to clear.")
    topic: str | None = Field(None, min_length=1, max_length=255)
    enabled: bool | None = None


class SubscriptionResponse(SubscriptionBase):
    """Schema for subscription response. The secret itself is never returned."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    endpoint_url: str
    secret: str | None = Field(None, exclude=True)
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def has_secret(self) -> bool:
        return bool(self.secret)


class DeliveryLogResponse(BaseModel):
    """Schema for delivery log response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    subscription_id: uuid.UUID | None
    success: bool
    status_code: int | None
    error_message: str | None
    attempt: int
    duration_ms: int | None
    dispatched_at: datetime


class DeliveryLogDetailResponse(DeliveryLogResponse):
    """Schema for delivery log response with request and response bodies."""

    request_body: Any = None
    response_body: str | None = None


class DeliveryLogPage(BaseModel):
    """A page of delivery logs."""

    items: list[DeliveryLogResponse]
    total: int
    limit: int
    offset: int
