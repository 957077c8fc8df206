"""Webhook payload serialization and signing."""

import hashlib
import hmac
import json
from typing import Any

SIGNATURE_HEADER = "X-Webhook-Signature"

SCHEME_SHA256 = "sha256"
SCHEME_HMAC_SHA256 = "hmac-sha256"


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def load_payload(raw: str | bytes) -> Any:
    """Parse strict JSON.

    ``NaN`` and ``Infinity`` are rejected, as is nesting too deep to parse.

    Raises:
        ValueError: If the input is not valid JSON
    """
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except RecursionError as e:
        raise ValueError("JSON is nested too deeply") from e


def serialize_payload(payload: Any) -> bytes:
    """Serialize a payload to the exact bytes sent and signed.

    Compact separators and raw UTF-8 match what subscribers already verify
    against (``JSON.stringify`` output). Non-finite floats raise ``ValueError``.
    """
    return json.dumps(
        payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False
    ).encode("utf-8")


def compute_signature(secret: str, body: bytes, scheme: str = SCHEME_SHA256) -> str:
    """Compute the lowercase hex signature for a request body.

    Args:
        secret: Subscription shared secret
        body: Serialized payload bytes
        scheme: 'sha256' for sha256(secret + body), 'hmac-sha256' for HMAC

    Returns:
        Hex digest string
    """
    if scheme == SCHEME_SHA256:
        return hashlib.sha256(secret.encode("utf-8") + body).hexdigest()
    if scheme == SCHEME_HMAC_SHA256:
        return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    raise ValueError(f"Unknown signature scheme: {scheme}")


def verify_signature(
    secret: str,
    body: bytes,
    signature: str,
    scheme: str = SCHEME_SHA256,
) -> bool:
    """Verify a received signature (timing-safe)."""
    expected = compute_signature(secret, body, scheme)
    return hmac.compare_digest(expected, signature.lower())


def build_headers(
    secret: str | None,
    body: bytes,
    scheme: str = SCHEME_SHA256,
    user_agent: str | None = None,
) -> dict[str, str]:
    """Build the outbound headers for one subscriber."""
    headers = {"Content-Type": "application/json"}
    if user_agent:
        headers["User-Agent"] = user_agent
    if secret:
        headers[SIGNATURE_HEADER] = compute_signature(secret, body, scheme)
    return headers
