"""Webhook dispatch module."""

from matriz.webhook.dispatcher import (
    DISPATCH_REQUIRED_MESSAGE,
    NO_SUBSCRIPTIONS_MESSAGE,
    DeliveryResult,
    DispatchSummary,
    InvalidDispatchEvent,
    WebhookDispatcher,
    validate_event,
)
from matriz.webhook.signing import (
    SIGNATURE_HEADER,
    build_headers,
    compute_signature,
    load_payload,
    serialize_payload,
    verify_signature,
)
from matriz.webhook.subscriptions import (
    WILDCARD_TOPIC,
    SubscriptionLookupError,
    resolve_subscriptions,
)

__all__ = [
    "DISPATCH_REQUIRED_MESSAGE",
    "NO_SUBSCRIPTIONS_MESSAGE",
    "SIGNATURE_HEADER",
    "WILDCARD_TOPIC",
    "DeliveryResult",
    "DispatchSummary",
    "InvalidDispatchEvent",
    "SubscriptionLookupError",
    "WebhookDispatcher",
    "build_headers",
    "compute_signature",
    "load_payload",
    "resolve_subscriptions",
    "serialize_payload",
    "validate_event",
    "verify_signature",
]
