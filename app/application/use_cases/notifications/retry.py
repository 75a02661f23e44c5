"""Explicit, bounded retry of failed channel deliveries.

Dispatch never retries on its own. A failed channel keeps ``sent=False`` with
its error and attempt count, and becomes eligible again here once its
backoff window has elapsed, until ``max_attempts`` is reached.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta

import anyio

from app.config import Settings
from app.domain.entities import DeliveryChannel, DispatchReport
from app.domain.exceptions import NotificationNotFound
from app.infrastructure.repositories import NotificationRepository, RetryCandidate
from app.utils import ensure_app_timezone, now_in_app_timezone

from .dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff capped by a maximum number of attempts per channel."""

    max_attempts: int = 3
    backoff_seconds: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            backoff_seconds=settings.retry_backoff_seconds,
        )

    def allows(self, attempts: int) -> bool:
        return attempts < self.max_attempts

    def delay_for(self, attempts: int) -> timedelta:
        """Return how long to wait after the ``attempts``-th failed attempt."""

        exponent = max(attempts - 1, 0)
        return timedelta(seconds=self.backoff_seconds * (2**exponent))

    def is_ready(self, candidate: RetryCandidate, now: datetime) -> bool:
        if not self.allows(candidate.attempts):
            return False
        if candidate.last_attempt_at is None:
            return True
        return candidate.last_attempt_at + self.delay_for(candidate.attempts) <= now


async def retry_notification(
    dispatcher: NotificationDispatcher,
    notification_id: int,
    *,
    policy: RetryPolicy,
) -> DispatchReport:
    """Re-attempt every failed channel of one notification right away.

    The backoff window is ignored, the attempt cap is not. Raises
    :class:`~app.domain.exceptions.NotificationNotFound` for unknown ids.
    """

    with dispatcher.session_factory() as session:
        notification = NotificationRepository(session).get(notification_id)

    channels: dict[DeliveryChannel, bool] = {
        channel: True
        for channel, status in notification.channels.items()
        if status.failed and policy.allows(status.attempts)
    }
    if not channels:
        logger.info("Notification %s has no retryable channels", notification_id)
    return await dispatcher.dispatch(notification, channels, publish=False)


async def retry_failed(
    dispatcher: NotificationDispatcher,
    *,
    policy: RetryPolicy,
    now: datetime | None = None,
) -> list[DispatchReport]:
    """Re-attempt failed channels whose backoff has elapsed."""

    moment = ensure_app_timezone(now) if now else now_in_app_timezone()
    with dispatcher.session_factory() as session:
        repository = NotificationRepository(session)
        candidates = repository.list_retry_candidates(max_attempts=policy.max_attempts)
        ready: dict[int, dict[DeliveryChannel, bool]] = defaultdict(dict)
        for candidate in candidates:
            if policy.is_ready(candidate, moment):
                ready[candidate.notification_id][candidate.channel] = True
        notifications = []
        for notification_id in ready:
            try:
                notifications.append(repository.get(notification_id))
            except NotificationNotFound:
                logger.info("Notification %s was removed before retry", notification_id)

    reports: list[DispatchReport] = []

    async def run(notification, channels) -> None:
        reports.append(await dispatcher.dispatch(notification, channels, publish=False))

    async with anyio.create_task_group() as group:
        for notification in notifications:
            group.start_soon(run, notification, ready[notification.id])

    if reports:
        logger.info("Retried failed channels of %d notifications", len(reports))
    return sorted(reports, key=lambda report: report.notification_id)


__all__ = ["RetryPolicy", "retry_failed", "retry_notification"]
