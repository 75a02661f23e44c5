"""Push lightweight notification events to realtime subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from app.domain.entities import Notification

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)


class NotificationPublisher:
    """Serialize notifications and schedule their delivery without waiting for it."""

    def __init__(self, manager: NotificationConnectionManager) -> None:
        self._manager = manager
        self._pending: set[asyncio.Task[Any]] = set()

    def publish(self, notification: Notification, *, unread_count: int | None = None) -> None:
        """Schedule ``notification`` to be delivered to its recipient."""

        message: dict[str, Any] = {
            "type": "notification",
            "data": serialize_notification(notification),
        }
        if unread_count is not None:
            message["unread_count"] = unread_count

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; realtime event for notification %s dropped",
                notification.id,
            )
            return

        task = loop.create_task(self._deliver(notification.recipient_id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, recipient_id: str, message: dict[str, Any]) -> None:
        try:
            delivered = await self._manager.send_to_recipient(recipient_id, message)
        except Exception:
            logger.exception("Realtime delivery to recipient %s failed", recipient_id)
            return
        if not delivered:
            logger.debug("Recipient %s has no realtime endpoints; event dropped", recipient_id)

    async def wait_idle(self) -> None:
        """Wait until every scheduled delivery has settled."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the realtime payload representation for ``notification``."""

    return {
        "id": notification.id,
        "recipient_id": notification.recipient_id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority.value,
        "data": notification.data or {},
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat()
        if notification.created_at
        else None,
    }


__all__ = ["NotificationPublisher", "serialize_notification"]
