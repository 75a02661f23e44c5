"""ORM models used by the application infrastructure."""

from .notification import NotificationChannelModel, NotificationModel
from .preference import NotificationPreferenceModel

__all__ = [
    "NotificationChannelModel",
    "NotificationModel",
    "NotificationPreferenceModel",
]
