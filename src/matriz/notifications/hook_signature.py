"""Standard Webhooks signature verification for the auth SMS hook."""

import base64
import binascii
import hashlib
import hmac
import time
from collections.abc import Mapping

ID_HEADER = "webhook-id"
TIMESTAMP_HEADER = "webhook-timestamp"
SIGNATURE_HEADER = "webhook-signature"

SIGNED_HEADERS = (ID_HEADER, TIMESTAMP_HEADER, SIGNATURE_HEADER)


class HookVerificationError(Exception):
    """Raised when a hook request fails signature verification."""


def has_signature_headers(headers: Mapping[str, str]) -> bool:
    """Whether the request carries any Standard Webhooks header."""
    return any(name in headers for name in (*SIGNED_HEADERS, "webhook_timestamp"))


def _decode_secret(secret: str) -> bytes:
    """Decode a ``v1,whsec_<base64>`` or ``whsec_<base64>`` secret."""
    if secret.lower().startswith("v1,"):
        secret = secret[3:]
    if secret.startswith("whsec_"):
        secret = secret[len("whsec_") :]
    try:
        return base64.b64decode(secret)
    except (binascii.Error, ValueError) as e:
        raise HookVerificationError("Hook secret is not valid base64") from e


def sign(secret: str, msg_id: str, timestamp: int, body: bytes) -> str:
    """Compute a ``v1,<base64>`` signature for a message."""
    key = _decode_secret(secret)
    signed_content = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(key, signed_content, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


def verify(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> None:
    """Verify a Standard Webhooks request.

    Args:
        secret: Hook secret as issued by the auth provider
        headers: Request headers (case-insensitive mapping)
        body: Raw request body
        tolerance_seconds: Allowed clock skew for the timestamp
        now: Current unix time (defaults to time.time())

    Raises:
        HookVerificationError: If headers are missing, stale or the signature does not match
    """
    msg_id = headers.get(ID_HEADER)
    raw_timestamp = headers.get(TIMESTAMP_HEADER) or headers.get("webhook_timestamp")
    signatures = headers.get(SIGNATURE_HEADER)
    if not msg_id or not raw_timestamp or not signatures:
        raise HookVerificationError("Missing required webhook headers")

    try:
        timestamp = int(raw_timestamp)
    except ValueError as e:
        raise HookVerificationError("Invalid webhook timestamp") from e

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance_seconds:
        raise HookVerificationError("Webhook timestamp outside tolerance")

    expected = sign(secret, msg_id, timestamp, body).split(",", 1)[1]
    for candidate in signatures.split(" "):
        version, _, value = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(value, expected):
            return

    raise HookVerificationError("No matching signature found")
