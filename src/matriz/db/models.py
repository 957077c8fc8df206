"""SQLAlchemy database models."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    # Use JSON with JSONB variant for PostgreSQL (works on SQLite too)
    type_annotation_map = {
        dict: JSON().with_variant(JSONB(), "postgresql"),
        dict[str, Any]: JSON().with_variant(JSONB(), "postgresql"),
        uuid.UUID: Uuid,
    }


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class WebhookSubscription(Base, TimestampMixin):
    """A registered destination for dispatched events."""

    __tablename__ = "webhook_subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    endpoint_url: Mapped[str] = mapped_column(Text, nullable=False)
    secret: Mapped[str | None] = mapped_column(Text, nullable=True)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)  # event name or "generic"
    enabled: Mapped[bool] = mapped_column(default=True, nullable=False)

    # Relationships
    delivery_logs: Mapped[list["WebhookDeliveryLog"]] = relationship(
        back_populates="subscription",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_webhook_subscriptions_enabled_topic", "enabled", "topic"),)

    def __repr__(self) -> str:
        return f"<WebhookSubscription {self.topic} -> {self.endpoint_url}>"


class WebhookDeliveryLog(Base):
    """Log of a single webhook delivery attempt."""

    __tablename__ = "webhook_delivery_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("webhook_subscriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    success: Mapped[bool] = mapped_column(default=False, nullable=False)
    status_code: Mapped[int | None] = mapped_column(nullable=True)
    # Payloads are arbitrary JSON values, not only objects
    request_body: Mapped[Any] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
    response_body: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempt: Mapped[int] = mapped_column(default=1, nullable=False)
    duration_ms: Mapped[int | None] = mapped_column(nullable=True)
    dispatched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    # Relationships
    subscription: Mapped["WebhookSubscription | None"] = relationship(
        back_populates="delivery_logs"
    )

    def __repr__(self) -> str:
        return f"<WebhookDeliveryLog {self.subscription_id} success={self.success}>"


class NotificationCredentials(Base, TimestampMixin):
    """Provider credentials for WhatsApp (Z-API) and e-mail (Brevo).

    Token and key columns hold Fernet ciphertext when an encryption key
    is configured.
    """

    __tablename__ = "notification_credentials"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    zapi_instance_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    zapi_instance_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    zapi_client_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    zapi_base_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    brevo_api_key: Mapped[str | None] = mapped_column(Text, nullable=True)
    brevo_default_from: Mapped[str | None] = mapped_column(String(255), nullable=True)
    brevo_default_from_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationCredentials {self.id}>"


class Communication(Base):
    """Record of a message sent through a notification channel."""

    __tablename__ = "comunicacoes"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )
    event_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    user_action: Mapped[str | None] = mapped_column(String(255), nullable=True)
    canal: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    destinatario: Mapped[str] = mapped_column(Text, nullable=False)
    conteudo: Mapped[str | None] = mapped_column(Text, nullable=True)
    assunto: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # "metadata" is reserved by the declarative API
    extra: Mapped[dict[str, Any]] = mapped_column("metadata", default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Communication {self.canal} -> {self.destinatario} {self.status}>"
