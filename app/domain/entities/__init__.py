"""Domain entities exposed by the application."""

from .delivery import (
    OUTCOME_FAILED,
    OUTCOME_SENT,
    OUTCOME_SKIPPED,
    BulkOutcome,
    BulkStatus,
    ChannelOutcome,
    DispatchReport,
)
from .notification import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    ChannelStatus,
    DeliveryChannel,
    InAppStatus,
    Notification,
    NotificationDraft,
    NotificationPriority,
    NotificationSource,
    NotificationState,
    NotificationType,
)
from .preferences import DEFAULT_PREFERENCES, PREFERENCE_CATEGORIES, NotificationPreferences
from .recipient import RecipientContact

__all__ = [
    "BulkOutcome",
    "BulkStatus",
    "ChannelOutcome",
    "ChannelStatus",
    "DeliveryChannel",
    "DEFAULT_PREFERENCES",
    "DispatchReport",
    "InAppStatus",
    "MESSAGE_MAX_LENGTH",
    "Notification",
    "NotificationDraft",
    "NotificationPreferences",
    "NotificationPriority",
    "NotificationSource",
    "NotificationState",
    "NotificationType",
    "OUTCOME_FAILED",
    "OUTCOME_SENT",
    "OUTCOME_SKIPPED",
    "PREFERENCE_CATEGORIES",
    "RecipientContact",
    "TITLE_MAX_LENGTH",
]
