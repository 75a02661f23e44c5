"""Read and archive transitions for a recipient's notifications."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from app.domain.entities import Notification, NotificationState
from app.domain.exceptions import AccessDenied
from app.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)


def _load_owned(
    repository: NotificationRepository,
    notification_id: int,
    *,
    recipient_id: str,
    is_admin: bool,
) -> Notification:
    notification = repository.get(notification_id)
    if not is_admin and notification.recipient_id != recipient_id:
        raise AccessDenied("Not authorized to access this notification")
    return notification


def get_notification(
    session: Session,
    notification_id: int,
    *,
    recipient_id: str,
    is_admin: bool = False,
) -> Notification:
    """Return a notification visible to ``recipient_id``."""

    return _load_owned(
        NotificationRepository(session),
        notification_id,
        recipient_id=recipient_id,
        is_admin=is_admin,
    )


def mark_notification_read(
    session: Session,
    notification_id: int,
    *,
    recipient_id: str,
    is_admin: bool = False,
) -> Notification:
    """Move an unread notification to read. Read or archived ones are left alone."""

    repository = NotificationRepository(session)
    notification = _load_owned(
        repository, notification_id, recipient_id=recipient_id, is_admin=is_admin
    )
    if not notification.can_transition(NotificationState.READ):
        return notification
    repository.mark_read(notification_id)
    return repository.get(notification_id)


def archive_notification(
    session: Session,
    notification_id: int,
    *,
    recipient_id: str,
    is_admin: bool = False,
) -> Notification:
    """Archive a notification. Archiving twice changes nothing."""

    repository = NotificationRepository(session)
    notification = _load_owned(
        repository, notification_id, recipient_id=recipient_id, is_admin=is_admin
    )
    if not notification.can_transition(NotificationState.ARCHIVED):
        return notification
    repository.archive(notification_id)
    logger.info("Notification %s archived by %s", notification_id, recipient_id)
    return repository.get(notification_id)


def mark_all_notifications_read(session: Session, *, recipient_id: str) -> int:
    """Mark every unread, non-archived notification of ``recipient_id`` as read."""

    updated = NotificationRepository(session).mark_all_read(recipient_id)
    logger.info("Marked %d notifications as read for %s", updated, recipient_id)
    return updated


def acknowledge_notifications(
    session: Session,
    notification_ids: Iterable[int],
    *,
    recipient_id: str,
) -> int:
    """Mark the given ids read, ignoring ids that belong to someone else."""

    unique_ids = list(dict.fromkeys(notification_ids))
    return NotificationRepository(session).mark_many_read(
        unique_ids, recipient_id=recipient_id
    )


__all__ = [
    "acknowledge_notifications",
    "archive_notification",
    "get_notification",
    "mark_all_notifications_read",
    "mark_notification_read",
]
