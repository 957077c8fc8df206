"""Encryption utilities for notification credentials at rest."""

import base64
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


def _fernet(key: str) -> Fernet:
    """Build a Fernet instance from an arbitrary-length user key.

    Fernet requires a 32-byte URL-safe base64-encoded key, so the
    configured key is hashed to a fixed length first.
    """
    key_bytes = hashlib.sha256(key.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(key_bytes))


def encrypt_value(plaintext: str | None, key: str | None) -> str | None:
    """Encrypt a credential value.

    Returns None for None input and the plaintext unchanged when no key is
    configured.
    """
    if plaintext is None:
        return None
    if key is None:
        return plaintext
    return _fernet(key).encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str | None, key: str | None) -> str | None:
    """Decrypt a credential value.

    Values written before an encryption key was configured are not valid
    Fernet tokens; those are returned as stored.
    """
    if ciphertext is None:
        return None
    if key is None:
        return ciphertext
    try:
        return _fernet(key).decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("Stored credential is not encrypted with the current key, using as-is")
        return ciphertext


def mask_secret(value: str | None, visible: int = 4) -> str | None:
    """Mask all but the last ``visible`` characters of a secret."""
    if not value:
        return value
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]
