"""Delivery log retention module."""

from matriz.cleanup.service import CleanupResult, DeliveryLogCleanupService
from matriz.cleanup.worker import CleanupWorker

__all__ = [
    "CleanupResult",
    "CleanupWorker",
    "DeliveryLogCleanupService",
]
