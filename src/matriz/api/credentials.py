"""Notification credentials API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from matriz.auth import Auth
from matriz.config import Settings, get_settings
from matriz.crypto import mask_secret
from matriz.db.models import NotificationCredentials
from matriz.db.session import get_session
from matriz.notifications.credentials import (
    ENCRYPTED_FIELDS,
    decrypt_credentials,
    get_stored_credentials,
    save_credentials,
)
from matriz.schemas import NotificationCredentialsResponse, NotificationCredentialsUpdate

router = APIRouter(prefix="/notification-credentials", tags=["notification-credentials"])


def _to_response(
    row: NotificationCredentials | None,
    settings: Settings,
) -> NotificationCredentialsResponse:
    values = decrypt_credentials(row, settings)
    for name in ENCRYPTED_FIELDS:
        values[name] = mask_secret(values[name])

    return NotificationCredentialsResponse(
        zapi_instance_id=values["zapi_instance_id"],
        zapi_instance_token=values["zapi_instance_token"],
        zapi_client_token=values["zapi_client_token"],
        zapi_base_url=values["zapi_base_url"] or settings.zapi_base_url,
        brevo_api_key=values["brevo_api_key"],
        brevo_default_from=values["brevo_default_from"] or settings.brevo_default_from,
        brevo_default_from_name=(
            values["brevo_default_from_name"] or settings.brevo_default_from_name
        ),
        updated_by=row.updated_by if row else None,
        updated_at=row.updated_at if row else None,
    )


@router.get("", response_model=NotificationCredentialsResponse)
async def get_credentials(
    auth: Auth,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> NotificationCredentialsResponse:
    """Get the stored provider credentials with secrets masked."""
    auth.require_scope("credentials:read")
    row = await get_stored_credentials(session)
    return _to_response(row, settings)


@router.put("", response_model=NotificationCredentialsResponse)
async def update_credentials(
    data: NotificationCredentialsUpdate,
    auth: Auth,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> NotificationCredentialsResponse:
    """Create or update the provider credentials."""
    auth.require_scope("credentials:write")
    row = await save_credentials(
        session,
        data.model_dump(exclude_unset=True),
        settings,
        updated_by=auth.role,
    )
    return _to_response(row, settings)
