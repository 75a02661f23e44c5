"""Use cases for creating, delivering and managing notifications."""

from .dispatcher import NotificationDispatcher, SessionFactory
from .lifecycle import (
    acknowledge_notifications,
    archive_notification,
    get_notification,
    mark_all_notifications_read,
    mark_notification_read,
)
from .preferences import get_preferences, update_preferences
from .queries import (
    MAX_PAGE_SIZE,
    NotificationPage,
    PageInfo,
    count_unread,
    list_notifications,
)
from .retry import RetryPolicy, retry_failed, retry_notification
from .scheduler import SchedulerGate
from .sweeper import SweepResult, run_periodic_sweeps, sweep_once
from .validators import build_draft, parse_channels, validate_content

__all__ = [
    "MAX_PAGE_SIZE",
    "NotificationDispatcher",
    "NotificationPage",
    "PageInfo",
    "RetryPolicy",
    "SchedulerGate",
    "SessionFactory",
    "SweepResult",
    "acknowledge_notifications",
    "archive_notification",
    "build_draft",
    "count_unread",
    "get_notification",
    "get_preferences",
    "list_notifications",
    "mark_all_notifications_read",
    "mark_notification_read",
    "parse_channels",
    "retry_failed",
    "retry_notification",
    "run_periodic_sweeps",
    "sweep_once",
    "update_preferences",
    "validate_content",
]
