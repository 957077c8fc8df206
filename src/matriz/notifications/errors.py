"""Notification provider exceptions."""

from typing import Any


class NotificationError(Exception):
    """Base class for notification failures."""


class CredentialsNotConfigured(NotificationError):
    """Raised when a provider has no usable credentials."""


class ProviderError(NotificationError):
    """Raised when a provider answers with a non-success status."""

    def __init__(self, provider: str, status_code: int, data: Any = None):
        self.provider = provider
        self.status_code = status_code
        self.data = data if data is not None else {}
        super().__init__(f"{provider} API error: HTTP {status_code}")
