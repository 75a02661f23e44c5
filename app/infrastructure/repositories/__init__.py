"""Repository implementations for infrastructure layer."""

from .notification_repository import NotificationRepository, RetryCandidate
from .preference_repository import PreferenceRepository

__all__ = [
    "NotificationRepository",
    "PreferenceRepository",
    "RetryCandidate",
]
