"""Initial schema.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # Webhook subscriptions
    op.create_table(
        "webhook_subscriptions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("endpoint_url", sa.Text(), nullable=False),
        sa.Column("secret", sa.Text(), nullable=True),
        sa.Column("topic", sa.String(255), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_webhook_subscriptions_enabled_topic",
        "webhook_subscriptions",
        ["enabled", "topic"],
    )

    # One row per delivery attempt
    op.create_table(
        "webhook_delivery_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subscription_id", sa.Uuid(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("request_body", JSON_TYPE, nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column(
            "dispatched_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["subscription_id"],
            ["webhook_subscriptions.id"],
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_webhook_delivery_logs_subscription_id",
        "webhook_delivery_logs",
        ["subscription_id"],
    )
    op.create_index(
        "ix_webhook_delivery_logs_dispatched_at",
        "webhook_delivery_logs",
        ["dispatched_at"],
    )

    # Provider credentials
    op.create_table(
        "notification_credentials",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("zapi_instance_id", sa.String(255), nullable=True),
        sa.Column("zapi_instance_token", sa.Text(), nullable=True),
        sa.Column("zapi_client_token", sa.Text(), nullable=True),
        sa.Column("zapi_base_url", sa.Text(), nullable=True),
        sa.Column("brevo_api_key", sa.Text(), nullable=True),
        sa.Column("brevo_default_from", sa.String(255), nullable=True),
        sa.Column("brevo_default_from_name", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Communication log
    op.create_table(
        "comunicacoes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_type", sa.String(100), nullable=True),
        sa.Column("user_action", sa.String(255), nullable=True),
        sa.Column("canal", sa.String(20), nullable=False),
        sa.Column("destinatario", sa.Text(), nullable=False),
        sa.Column("conteudo", sa.Text(), nullable=True),
        sa.Column("assunto", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("metadata", JSON_TYPE, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_comunicacoes_canal", "comunicacoes", ["canal"])
    op.create_index("ix_comunicacoes_created_at", "comunicacoes", ["created_at"])


def downgrade() -> None:
    op.drop_table("comunicacoes")
    op.drop_table("notification_credentials")
    op.drop_table("webhook_delivery_logs")
    op.drop_table("webhook_subscriptions")
