"""Database enum types for consistent channel and status values."""

from enum import Enum


class CommunicationChannel(str, Enum):
    """Channels a communication can be sent through."""

    WHATSAPP = "whatsapp"
    EMAIL = "email"
    SMS = "sms"


class CommunicationStatus(str, Enum):
    """Outcome values recorded for a communication."""

    SENT = "enviado"
    FAILED = "falhou"
