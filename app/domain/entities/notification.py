"""Domain entity representing a notification and its per-channel delivery state.

Read/archive state machine::

    UNREAD -> READ -> ARCHIVED
    UNREAD ---------> ARCHIVED

``ARCHIVED`` is terminal. Transport channel state (email, SMS, push) is
tracked independently of this lifecycle in :class:`ChannelStatus`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from app.utils import is_due

TITLE_MAX_LENGTH = 100
MESSAGE_MAX_LENGTH = 1000


class NotificationType(str, Enum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_REMINDER = "booking_reminder"
    PAYMENT_RECEIVED = "payment_received"
    REVIEW_RECEIVED = "review_received"
    SERVICE_UPDATE = "service_update"
    MESSAGE = "message"
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    VERIFICATION_REMINDER = "verification_reminder"
    PASSWORD_RESET = "password_reset"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationSource(str, Enum):
    SYSTEM = "system"
    USER = "user"
    SERVICE = "service"


class DeliveryChannel(str, Enum):
    """Transport channels handled by the dispatcher.

    In-app delivery is not listed: it always happens through the real-time bus.
    """

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"


class NotificationState(str, Enum):
    UNREAD = "unread"
    READ = "read"
    ARCHIVED = "archived"


_VALID_TRANSITIONS: dict[NotificationState, set[NotificationState]] = {
    NotificationState.UNREAD: {NotificationState.READ, NotificationState.ARCHIVED},
    NotificationState.READ: {NotificationState.ARCHIVED},
    NotificationState.ARCHIVED: set(),
}


@dataclass
class ChannelStatus:
    """Delivery outcome of one transport channel."""

    sent: bool = False
    sent_at: datetime | None = None
    error: str | None = None
    attempts: int = 0
    last_attempt_at: datetime | None = None

    @property
    def failed(self) -> bool:
        return not self.sent and self.error is not None


@dataclass
class InAppStatus:
    read: bool = False
    read_at: datetime | None = None


@dataclass
class NotificationDraft:
    """Validated producer submission, ready to be persisted."""

    recipient_id: str
    type: NotificationType
    title: str
    message: str
    channels: list[DeliveryChannel] = field(default_factory=list)
    sender_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.NORMAL
    source: NotificationSource = NotificationSource.SYSTEM
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None


@dataclass
class Notification:
    """Notification addressed to exactly one recipient."""

    id: int | None
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    sender_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.NORMAL
    source: NotificationSource = NotificationSource.SYSTEM
    channels: dict[DeliveryChannel, ChannelStatus] = field(default_factory=dict)
    in_app: InAppStatus = field(default_factory=InAppStatus)
    is_read: bool = False
    is_archived: bool = False
    archived_at: datetime | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    dispatched_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def state(self) -> NotificationState:
        if self.is_archived:
            return NotificationState.ARCHIVED
        if self.is_read:
            return NotificationState.READ
        return NotificationState.UNREAD

    def can_transition(self, target: NotificationState) -> bool:
        return target in _VALID_TRANSITIONS[self.state]

    def is_due(self, now: datetime) -> bool:
        """Return whether the notification may be dispatched at ``now``."""

        return self.dispatched_at is None and is_due(self.scheduled_for, now)

    def requested_channels(self) -> dict[DeliveryChannel, bool]:
        return {channel: True for channel in self.channels}


__all__ = [
    "ChannelStatus",
    "DeliveryChannel",
    "InAppStatus",
    "MESSAGE_MAX_LENGTH",
    "Notification",
    "NotificationDraft",
    "NotificationPriority",
    "NotificationSource",
    "NotificationState",
    "NotificationType",
    "TITLE_MAX_LENGTH",
]
