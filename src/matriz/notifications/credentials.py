"""Provider credential resolution and storage.

Credentials saved through the management API take precedence. Any field
left empty there falls back to the value configured in the environment.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from matriz.config import Settings
from matriz.crypto import decrypt_value, encrypt_value
from matriz.db.models import NotificationCredentials
from matriz.notifications.errors import CredentialsNotConfigured

logger = logging.getLogger(__name__)

# Columns stored as ciphertext when an encryption key is configured
ENCRYPTED_FIELDS = ("zapi_instance_token", "zapi_client_token", "brevo_api_key")

CREDENTIAL_FIELDS = (
    "zapi_instance_id",
    "zapi_instance_token",
    "zapi_client_token",
    "zapi_base_url",
    "brevo_api_key",
    "brevo_default_from",
    "brevo_default_from_name",
)


@dataclass
class ZApiCredentials:
    instance_id: str
    instance_token: str
    client_token: str
    base_url: str


@dataclass
class BrevoCredentials:
    api_key: str
    default_from: str
    default_from_name: str


@dataclass
class BirdCredentials:
    workspace_id: str
    channel_id: str
    access_key: str


def _secret(value) -> str | None:
    return value.get_secret_value() if value is not None else None


async def get_stored_credentials(session: AsyncSession) -> NotificationCredentials | None:
    """Return the most recently updated credentials row, if any."""
    stmt = (
        select(NotificationCredentials)
        .order_by(NotificationCredentials.updated_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def decrypt_credentials(
    row: NotificationCredentials | None,
    settings: Settings,
) -> dict[str, str | None]:
    """Return the stored credential fields as plaintext."""
    values: dict[str, str | None] = dict.fromkeys(CREDENTIAL_FIELDS)
    if row is None:
        return values
    for name in CREDENTIAL_FIELDS:
        value = getattr(row, name)
        if name in ENCRYPTED_FIELDS:
            value = decrypt_value(value, settings.encryption_key)
        values[name] = value
    return values


async def load_zapi_credentials(session: AsyncSession, settings: Settings) -> ZApiCredentials:
    """Resolve Z-API credentials.

    Raises:
        CredentialsNotConfigured: If instance id, instance token or client token is missing
    """
    stored = decrypt_credentials(await get_stored_credentials(session), settings)
    instance_id = stored["zapi_instance_id"] or settings.zapi_instance_id
    instance_token = stored["zapi_instance_token"] or _secret(settings.zapi_instance_token)
    client_token = stored["zapi_client_token"] or _secret(settings.zapi_client_token)
    base_url = stored["zapi_base_url"] or settings.zapi_base_url

    if not instance_id or not instance_token or not client_token:
        raise CredentialsNotConfigured("Z-API credentials not configured")

    return ZApiCredentials(
        instance_id=instance_id,
        instance_token=instance_token,
        client_token=client_token,
        base_url=base_url.rstrip("/"),
    )


async def load_brevo_credentials(session: AsyncSession, settings: Settings) -> BrevoCredentials:
    """Resolve Brevo credentials.

    Raises:
        CredentialsNotConfigured: If no API key is available
    """
    stored = decrypt_credentials(await get_stored_credentials(session), settings)
    api_key = stored["brevo_api_key"] or _secret(settings.brevo_api_key)
    if not api_key:
        raise CredentialsNotConfigured("Brevo API key not configured")

    return BrevoCredentials(
        api_key=api_key,
        default_from=stored["brevo_default_from"] or settings.brevo_default_from,
        default_from_name=stored["brevo_default_from_name"] or settings.brevo_default_from_name,
    )


def load_bird_credentials(settings: Settings) -> BirdCredentials:
    """Resolve Bird SMS credentials from configuration.

    Raises:
        CredentialsNotConfigured: If any of workspace, channel or access key is missing
    """
    access_key = _secret(settings.sms_access_key)
    if not settings.sms_workspace_id or not settings.sms_channel_id or not access_key:
        raise CredentialsNotConfigured(
            "Missing SMS_WORKSPACE_ID / SMS_CHANNEL_ID / SMS_ACCESS_KEY configuration"
        )
    return BirdCredentials(
        workspace_id=settings.sms_workspace_id,
        channel_id=settings.sms_channel_id,
        access_key=access_key,
    )


async def save_credentials(
    session: AsyncSession,
    updates: dict[str, Any],
    settings: Settings,
    updated_by: str | None = None,
) -> NotificationCredentials:
    """Create or update the single credentials row.

    Only keys present in ``updates`` are written.
    """
    row = await get_stored_credentials(session)
    if row is None:
        row = NotificationCredentials()
        session.add(row)

    for name, value in updates.items():
        if name not in CREDENTIAL_FIELDS:
            continue
        if name in ENCRYPTED_FIELDS:
            value = encrypt_value(value, settings.encryption_key)
        setattr(row, name, value)
    row.updated_by = updated_by

    await session.flush()
    await session.refresh(row)
    logger.info(f"Notification credentials updated by {updated_by or 'unknown'}")
    return row
