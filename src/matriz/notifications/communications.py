"""Communication log (``comunicacoes``) writes."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matriz.db.enums import CommunicationChannel, CommunicationStatus
from matriz.db.models import Communication

logger = logging.getLogger(__name__)


def extract_external_id(data: Any) -> str | None:
    """Pull the provider message id out of a provider response."""
    if not isinstance(data, dict):
        return None
    value = data.get("id") or data.get("messageId")
    return str(value) if value is not None else None


async def record_communication(
    session_factory: async_sessionmaker[AsyncSession],
    channel: CommunicationChannel,
    recipient: str,
    content: str | None,
    subject: str | None = None,
    status: CommunicationStatus = CommunicationStatus.SENT,
    event_type: str | None = None,
    user_action: str | None = None,
    external_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> bool:
    """Insert a communication row.

    Best-effort: a failed write is logged and reported as False, never raised.
    """
    entry = Communication(
        event_type=event_type,
        user_action=user_action,
        canal=channel.value,
        destinatario=recipient,
        conteudo=content,
        assunto=subject,
        status=status.value,
        external_id=external_id,
        extra=metadata or {},
    )
    try:
        async with session_factory() as session:
            session.add(entry)
            await session.commit()
    except Exception:
        logger.exception(f"Failed to record {channel.value} communication to {recipient}")
        return False
    return True
