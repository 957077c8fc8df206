"""Matriz Prometheus metrics."""

from matriz.metrics.definitions import (
    NOTIFICATIONS_TOTAL,
    REQUEST_DURATION,
    REQUEST_TOTAL,
    WEBHOOK_DELIVERIES_TOTAL,
    WEBHOOK_DELIVERY_DURATION,
    WEBHOOK_DISPATCHES_TOTAL,
    WEBHOOK_LOG_WRITE_FAILURES,
)
from matriz.metrics.middleware import MetricsMiddleware

__all__ = [
    "MetricsMiddleware",
    "NOTIFICATIONS_TOTAL",
    "REQUEST_DURATION",
    "REQUEST_TOTAL",
    "WEBHOOK_DELIVERIES_TOTAL",
    "WEBHOOK_DELIVERY_DURATION",
    "WEBHOOK_DISPATCHES_TOTAL",
    "WEBHOOK_LOG_WRITE_FAILURES",
]
