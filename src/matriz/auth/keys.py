"""API key generation and extraction utilities."""

import secrets
from collections.abc import Mapping

API_KEY_PREFIX = "mtz_"
API_KEY_LENGTH = 32
KEY_ID_LENGTH = 12


def generate_api_key(prefix: str = API_KEY_PREFIX) -> str:
    """Generate a random key suitable for ``MATRIZ_SERVICE_ROLE_KEY`` or ``MATRIZ_ANON_KEY``."""
    return f"{prefix}{secrets.token_urlsafe(API_KEY_LENGTH)}"


def extract_api_key(headers: Mapping[str, str]) -> str | None:
    """Read the caller's key from ``X-API-Key``, ``apikey`` or a bearer token.

    Browser clients send the public key in ``apikey`` and a user token in
    ``Authorization``, so the explicit key headers win.
    """
    for name in ("x-api-key", "apikey"):
        value = headers.get(name)
        if value:
            return value.strip()

    authorization = headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


def api_key_id(key: str | None) -> str | None:
    """Return a loggable identifier for a key (its first characters only)."""
    if not key or len(key) < KEY_ID_LENGTH:
        return None
    return key[:KEY_ID_LENGTH]


def keys_match(provided: str, expected: str) -> bool:
    """Timing-safe key comparison."""
    return secrets.compare_digest(provided.encode(), expected.encode())
