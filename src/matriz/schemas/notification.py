"""Notification credential Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class NotificationCredentialsResponse(BaseModel):
    """Current provider credentials. Tokens and keys are masked."""

    zapi_instance_id: str | None = None
    zapi_instance_token: str | None = None
    zapi_client_token: str | None = None
    zapi_base_url: str
    brevo_api_key: str | None = None
    brevo_default_from: str
    brevo_default_from_name: str
    updated_by: str | None = None
    updated_at: datetime | None = None


class NotificationCredentialsUpdate(BaseModel):
    """Schema for updating credentials. Omitted fields are left untouched."""

    zapi_instance_id: str | None = Field(None, max_length=255)
    zapi_instance_token: str | None = None
    zapi_client_token: str | None = None
    zapi_base_url: str | None = None
    brevo_api_key: str | None = None
    brevo_default_from: str | None = Field(None, max_length=255)
    brevo_default_from_name: str | None = Field(None, max_length=255)
