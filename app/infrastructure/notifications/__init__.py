"""Realtime notification helpers for the infrastructure layer."""

from .manager import NotificationConnectionManager, RealtimeEndpoint
from .publisher import NotificationPublisher, serialize_notification

__all__ = [
    "NotificationConnectionManager",
    "NotificationPublisher",
    "RealtimeEndpoint",
    "serialize_notification",
]
