"""Outbound notifications over WhatsApp (Z-API), e-mail (Brevo) and SMS (Bird)."""

from matriz.notifications.errors import CredentialsNotConfigured, NotificationError, ProviderError
from matriz.notifications.service import NotificationService, OtpDelivery

__all__ = [
    "CredentialsNotConfigured",
    "NotificationError",
    "NotificationService",
    "OtpDelivery",
    "ProviderError",
]
