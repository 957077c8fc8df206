"""Notification service: send through a provider and keep the communication log."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from matriz.config import Settings, get_settings
from matriz.db.enums import CommunicationChannel
from matriz.http_client import get_http_client
from matriz.metrics.definitions import NOTIFICATIONS_TOTAL
from matriz.notifications.communications import extract_external_id, record_communication
from matriz.notifications.credentials import (
    load_bird_credentials,
    load_brevo_credentials,
    load_zapi_credentials,
)
from matriz.notifications.otp import build_otp_message, normalize_phone
from matriz.notifications.providers import bird_send_sms, brevo_send_email, zapi_send_text

logger = logging.getLogger(__name__)


@dataclass
class OtpDelivery:
    """Per-channel outcome of a login code delivery."""

    sms: bool
    whatsapp: bool

    @property
    def any_sent(self) -> bool:
        return self.sms or self.whatsapp

    def to_dict(self) -> dict[str, bool]:
        return {"sms": self.sms, "whatsapp": self.whatsapp}


class NotificationService:
    """Sends WhatsApp, e-mail and SMS messages.

    Provider errors propagate to the caller. Communication log writes are
    best-effort and never fail a send that already went out.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: httpx.AsyncClient | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.client = client
        self.settings = settings or get_settings()

    async def _client(self) -> httpx.AsyncClient:
        return self.client or await get_http_client()

    async def send_whatsapp(
        self,
        phone: str,
        message: str,
        log_data: dict[str, Any] | None = None,
    ) -> Any:
        """Send a WhatsApp text and record it as a ``whatsapp`` communication.

        Raises:
            CredentialsNotConfigured: If Z-API credentials are missing
            ProviderError: If Z-API rejects the message
        """
        async with self.session_factory() as session:
            credentials = await load_zapi_credentials(session, self.settings)

        try:
            data = await zapi_send_text(
                await self._client(),
                credentials,
                phone,
                message,
                timeout=self.settings.provider_timeout,
            )
        except Exception:
            NOTIFICATIONS_TOTAL.labels(channel="whatsapp", result="failed").inc()
            raise
        NOTIFICATIONS_TOTAL.labels(channel="whatsapp", result="sent").inc()
        logger.info(f"WhatsApp message sent to {phone}")

        log_data = log_data or {}
        await record_communication(
            self.session_factory,
            CommunicationChannel.WHATSAPP,
            recipient=phone,
            content=message,
            event_type=log_data.get("event_type") or "whatsapp_message",
            user_action=log_data.get("user_action") or "system",
            external_id=extract_external_id(data),
            metadata={"zapi_response": data, "request_data": log_data or None},
        )
        return data

    async def send_email(
        self,
        to: str | list[str],
        subject: str,
        html: str | None = None,
        text: str | None = None,
        sender_email: str | None = None,
        sender_name: str | None = None,
        log_data: dict[str, Any] | None = None,
    ) -> Any:
        """Send a transactional e-mail.

        A communication row is only written when ``log_data`` is given.

        Raises:
            CredentialsNotConfigured: If no Brevo API key is configured
            ProviderError: If Brevo rejects the message
        """
        async with self.session_factory() as session:
            credentials = await load_brevo_credentials(session, self.settings)

        try:
            data = await brevo_send_email(
                await self._client(),
                credentials,
                to,
                subject,
                html=html,
                text=text,
                sender_email=sender_email,
                sender_name=sender_name,
                api_url=self.settings.brevo_api_url,
                timeout=self.settings.provider_timeout,
            )
        except Exception:
            NOTIFICATIONS_TOTAL.labels(channel="email", result="failed").inc()
            raise
        NOTIFICATIONS_TOTAL.labels(channel="email", result="sent").inc()
        logger.info(f"E-mail '{subject}' sent")

        if log_data:
            recipients = to if isinstance(to, list) else [to]
            metadata = log_data.get("metadata")
            await record_communication(
                self.session_factory,
                CommunicationChannel.EMAIL,
                recipient=log_data.get("destinatario") or ", ".join(recipients),
                content=html or text,
                subject=log_data.get("assunto") or subject,
                event_type=log_data.get("event_type"),
                user_action=log_data.get("user_action"),
                external_id=extract_external_id(data),
                metadata=metadata if isinstance(metadata, dict) else None,
            )
        return data

    async def send_sms(self, phone: str, text: str) -> Any:
        """Send an SMS through Bird.

        Raises:
            CredentialsNotConfigured: If Bird is not configured
            ProviderError: If Bird rejects the message
        """
        credentials = load_bird_credentials(self.settings)
        try:
            data = await bird_send_sms(
                await self._client(),
                credentials,
                phone,
                text,
                api_url=self.settings.bird_api_url,
                timeout=self.settings.provider_timeout,
            )
        except Exception:
            NOTIFICATIONS_TOTAL.labels(channel="sms", result="failed").inc()
            raise
        NOTIFICATIONS_TOTAL.labels(channel="sms", result="sent").inc()
        return data

    async def send_login_otp(self, phone: str, otp: str) -> OtpDelivery:
        """Send a login code over SMS and WhatsApp at the same time.

        Each channel fails independently; the caller decides what to do when
        both fail.
        """
        normalized = normalize_phone(phone)
        message = build_otp_message(otp)

        sms_result, whatsapp_result = await asyncio.gather(
            self.send_sms(normalized, message),
            self.send_whatsapp(
                normalized,
                message,
                log_data={"event_type": "auth_otp", "user_action": "system"},
            ),
            return_exceptions=True,
        )

        if isinstance(sms_result, BaseException):
            logger.error(f"OTP SMS to {normalized} failed: {sms_result}")
        if isinstance(whatsapp_result, BaseException):
            logger.error(f"OTP WhatsApp to {normalized} failed: {whatsapp_result}")

        return OtpDelivery(
            sms=not isinstance(sms_result, BaseException),
            whatsapp=not isinstance(whatsapp_result, BaseException),
        )
