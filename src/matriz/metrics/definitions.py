"""Prometheus metrics definitions for Matriz."""

from prometheus_client import Counter, Histogram

# HTTP Request metrics
REQUEST_TOTAL = Counter(
    "matriz_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "matriz_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Webhook dispatch metrics
WEBHOOK_DISPATCHES_TOTAL = Counter(
    "matriz_webhook_dispatches_total",
    "Total dispatched events",
    ["result"],  # fanned_out, no_subscribers, lookup_failed
)

WEBHOOK_DELIVERIES_TOTAL = Counter(
    "matriz_webhook_deliveries_total",
    "Total webhook delivery attempts",
    ["status"],  # delivered, failed
)

WEBHOOK_DELIVERY_DURATION = Histogram(
    "matriz_webhook_delivery_duration_seconds",
    "Webhook delivery duration in seconds",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

WEBHOOK_LOG_WRITE_FAILURES = Counter(
    "matriz_webhook_log_write_failures_total",
    "Delivery log rows that could not be written",
)

# Notification metrics
NOTIFICATIONS_TOTAL = Counter(
    "matriz_notifications_total",
    "Messages sent through notification providers",
    ["channel", "result"],  # channel: whatsapp/email/sms, result: sent/failed
)
