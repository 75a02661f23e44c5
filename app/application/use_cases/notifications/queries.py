"""Read-side queries over a recipient's notifications."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from app.domain.entities import (
    Notification,
    NotificationPriority,
    NotificationType,
)
from app.domain.exceptions import ValidationError
from app.infrastructure.repositories import NotificationRepository

from .validators import coerce_enum

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageInfo:
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


@dataclass
class NotificationPage:
    items: Sequence[Notification]
    unread_count: int
    page_info: PageInfo


def list_notifications(
    session: Session,
    *,
    recipient_id: str,
    page: int = 1,
    limit: int = 20,
    type: Any = None,
    is_read: bool | None = None,
    priority: Any = None,
) -> NotificationPage:
    """Return one page of non-archived notifications, newest first."""

    errors: dict[str, list[str]] = {}
    if page < 1:
        errors.setdefault("page", []).append("must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        errors.setdefault("limit", []).append(f"must be between 1 and {MAX_PAGE_SIZE}")
    type_filter = coerce_enum(NotificationType, type, "type", errors) if type else None
    priority_filter = (
        coerce_enum(NotificationPriority, priority, "priority", errors) if priority else None
    )
    if errors:
        raise ValidationError(errors)

    repository = NotificationRepository(session)
    items, total = repository.list_for_recipient(
        recipient_id,
        type=type_filter,
        is_read=is_read,
        priority=priority_filter,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return NotificationPage(
        items=items,
        unread_count=repository.unread_count(recipient_id),
        page_info=PageInfo(page=page, limit=limit, total=total),
    )


def count_unread(session: Session, *, recipient_id: str) -> int:
    return NotificationRepository(session).unread_count(recipient_id)


__all__ = [
    "MAX_PAGE_SIZE",
    "NotificationPage",
    "PageInfo",
    "count_unread",
    "list_notifications",
]
