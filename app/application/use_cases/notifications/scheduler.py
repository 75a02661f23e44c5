"""Decide when notifications are handed to the dispatcher.

Submission happens in two phases. The record is created first; releasing it
to the dispatcher is a separate step that only succeeds once, guarded by a
conditional update of ``dispatched_at``. Immediate notifications are released
right after creation, deferred ones by :meth:`SchedulerGate.process_due`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import anyio
from sqlalchemy.exc import SQLAlchemyError

from app.domain.entities import (
    BulkOutcome,
    BulkStatus,
    DispatchReport,
    Notification,
    NotificationDraft,
)
from app.domain.exceptions import NotificationError, NotificationNotFound
from app.infrastructure.repositories import NotificationRepository
from app.utils import ensure_app_timezone, now_in_app_timezone

from .dispatcher import NotificationDispatcher
from .validators import build_draft, validate_content

logger = logging.getLogger(__name__)


class SchedulerGate:
    """Create notifications and release them to the dispatcher exactly once."""

    def __init__(self, dispatcher: NotificationDispatcher) -> None:
        self._dispatcher = dispatcher
        self._session_factory = dispatcher.session_factory

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    async def submit(self, *, now: datetime | None = None, **fields: Any) -> Notification:
        """Validate and persist a notification, dispatching it when already due.

        Returns the record as created: every requested channel reports
        ``sent=False`` regardless of what the dispatch did afterwards.
        """

        draft = build_draft(**fields)
        notification, _ = await self._create_and_release(draft, now)
        return notification

    async def release(
        self, notification: Notification, *, now: datetime | None = None
    ) -> DispatchReport | None:
        """Dispatch ``notification`` if it is due and nobody released it yet."""

        moment = ensure_app_timezone(now) if now else now_in_app_timezone()
        if notification.dispatched_at is not None:
            logger.info("Notification %s already released; skipping", notification.id)
            return None
        if not notification.is_due(moment):
            logger.info(
                "Notification %s deferred until %s",
                notification.id,
                notification.scheduled_for.isoformat() if notification.scheduled_for else "now",
            )
            return None

        with self._session_factory() as session:
            claimed = NotificationRepository(session).claim_dispatch(notification.id, at=moment)
        if not claimed:
            logger.info("Notification %s already released; skipping", notification.id)
            return None
        return await self._dispatcher.dispatch(notification)

    async def process_due(
        self, *, now: datetime | None = None, limit: int | None = None
    ) -> list[DispatchReport]:
        """Release every deferred notification whose ``scheduled_for`` has passed.

        Each record is claimed before dispatch, so overlapping sweeps never
        dispatch the same notification twice.
        """

        moment = ensure_app_timezone(now) if now else now_in_app_timezone()
        with self._session_factory() as session:
            repository = NotificationRepository(session)
            due_ids = repository.list_due_ids(moment, limit=limit)
            claimed: list[Notification] = []
            for notification_id in due_ids:
                if not repository.claim_dispatch(notification_id, at=moment):
                    continue
                try:
                    claimed.append(repository.get(notification_id))
                except NotificationNotFound:
                    logger.info("Notification %s was removed before dispatch", notification_id)

        reports: list[DispatchReport] = []

        async def run(notification: Notification) -> None:
            reports.append(await self._dispatcher.dispatch(notification))

        # Claimed records are dispatched even if the sweep itself is cancelled.
        with anyio.CancelScope(shield=True):
            async with anyio.create_task_group() as group:
                for notification in claimed:
                    group.start_soon(run, notification)

        if due_ids:
            logger.info(
                "Due sweep found %d notifications, dispatched %d", len(due_ids), len(reports)
            )
        return sorted(reports, key=lambda report: report.notification_id)

    async def bulk_send(
        self,
        recipient_ids: Iterable[str],
        *,
        now: datetime | None = None,
        **content: Any,
    ) -> list[BulkOutcome]:
        """Create and release one notification per recipient.

        The shared content is validated once up front and a bad payload is
        raised to the caller. After that, each recipient is handled on its
        own: a failure is reported in that recipient's outcome only.
        """

        sender_id = content.pop("sender_id", None)
        source = content.pop("source", None)
        validate_content(
            type=content.get("type"),
            title=content.get("title"),
            message=content.get("message"),
            channels=content.get("channels"),
            data=content.get("data"),
            priority=content.get("priority"),
            scheduled_for=content.get("scheduled_for"),
            expires_at=content.get("expires_at"),
        )

        recipients = list(dict.fromkeys(recipient_ids))
        outcomes: dict[int, BulkOutcome] = {}

        async def run(index: int, recipient_id: str) -> None:
            outcomes[index] = await self._send_one(
                recipient_id, now=now, sender_id=sender_id, source=source, **content
            )

        async with anyio.create_task_group() as group:
            for index, recipient_id in enumerate(recipients):
                group.start_soon(run, index, recipient_id)

        ordered = [outcomes[index] for index in range(len(recipients))]
        failed = sum(1 for outcome in ordered if outcome.status is BulkStatus.FAILED)
        logger.info(
            "Bulk send to %d recipients finished with %d failures", len(ordered), failed
        )
        return ordered

    async def _send_one(
        self, recipient_id: str, *, now: datetime | None, **fields: Any
    ) -> BulkOutcome:
        try:
            draft = build_draft(recipient_id=recipient_id, **fields)
            notification, report = await self._create_and_release(draft, now)
        except (NotificationError, SQLAlchemyError) as exc:
            logger.warning("Bulk send to recipient %s failed: %s", recipient_id, exc)
            return BulkOutcome(
                recipient_id=str(recipient_id), status=BulkStatus.FAILED, error=str(exc)
            )

        return BulkOutcome(
            recipient_id=recipient_id,
            status=BulkStatus.SCHEDULED if report is None else BulkStatus.DISPATCHED,
            notification=notification,
            report=report,
        )

    async def _create_and_release(
        self, draft: NotificationDraft, now: datetime | None
    ) -> tuple[Notification, DispatchReport | None]:
        with self._session_factory() as session:
            notification = NotificationRepository(session).create(draft)
        logger.info(
            "Notification %s created for recipient %s (%s)",
            notification.id,
            notification.recipient_id,
            notification.type.value,
        )
        report = await self.release(notification, now=now)
        return notification, report


__all__ = ["SchedulerGate"]
