"""Persistence helpers for notification entities.

Every state change is issued as a targeted ``UPDATE`` on the columns it owns
so concurrent writers never overwrite each other's fields.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.entities import (
    ChannelStatus,
    DeliveryChannel,
    InAppStatus,
    Notification,
    NotificationDraft,
    NotificationPriority,
    NotificationSource,
    NotificationType,
)
from app.domain.exceptions import NotificationNotFound
from app.infrastructure.models import NotificationChannelModel, NotificationModel
from app.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)

_ERROR_MAX_LENGTH = 500


@dataclass(frozen=True)
class RetryCandidate:
    """A failed channel that may be attempted again."""

    notification_id: int
    channel: DeliveryChannel
    attempts: int
    last_attempt_at: datetime | None


class NotificationRepository:
    """Provide CRUD and state transitions for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, draft: NotificationDraft) -> Notification:
        now = ensure_app_naive_datetime(now_in_app_timezone())
        model = NotificationModel(
            recipient_id=draft.recipient_id,
            sender_id=draft.sender_id,
            type=draft.type.value,
            title=draft.title,
            message=draft.message,
            data=draft.data or {},
            priority=draft.priority.value,
            source=draft.source.value,
            is_read=False,
            is_archived=False,
            scheduled_for=ensure_app_naive_datetime(draft.scheduled_for),
            expires_at=ensure_app_naive_datetime(draft.expires_at),
            created_at=now,
            updated_at=now,
        )
        model.channels = [
            NotificationChannelModel(channel=channel.value, sent=False, attempts=0)
            for channel in draft.channels
        ]
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def get(self, notification_id: int) -> Notification:
        model = self.session.get(NotificationModel, notification_id)
        if model is None:
            raise NotificationNotFound(notification_id)
        return self._to_entity(model)

    def update_channel_status(
        self,
        notification_id: int,
        channel: DeliveryChannel,
        *,
        sent: bool,
        error: str | None = None,
        at: datetime | None = None,
    ) -> bool:
        """Record the outcome of one channel attempt.

        Only the row of ``channel`` is touched. A failure never clears a
        channel that already reports ``sent=True``. Returns whether a row was
        updated.
        """

        moment = ensure_app_naive_datetime(at or now_in_app_timezone())
        query = self.session.query(NotificationChannelModel).filter(
            NotificationChannelModel.notification_id == notification_id,
            NotificationChannelModel.channel == channel.value,
        )
        if sent:
            values = {
                NotificationChannelModel.sent: True,
                NotificationChannelModel.sent_at: moment,
                NotificationChannelModel.error: None,
            }
        else:
            query = query.filter(NotificationChannelModel.sent.is_(False))
            values = {
                NotificationChannelModel.error: (error or "Unknown delivery error")[
                    :_ERROR_MAX_LENGTH
                ],
            }
        values[NotificationChannelModel.attempts] = NotificationChannelModel.attempts + 1
        values[NotificationChannelModel.last_attempt_at] = moment

        updated = query.update(values, synchronize_session=False)
        self.session.commit()
        return updated == 1

    def ensure_channel(self, notification_id: int, channel: DeliveryChannel) -> bool:
        """Create the status row of ``channel`` if the notification lacks one.

        Returns ``True`` when a row was inserted.
        """

        exists = self.session.scalar(
            select(NotificationChannelModel.id).where(
                NotificationChannelModel.notification_id == notification_id,
                NotificationChannelModel.channel == channel.value,
            )
        )
        if exists is not None:
            return False
        self.session.add(
            NotificationChannelModel(
                notification_id=notification_id,
                channel=channel.value,
                sent=False,
                attempts=0,
            )
        )
        try:
            self.session.commit()
        except IntegrityError:
            # Another writer inserted the same row first.
            self.session.rollback()
            return False
        return True

    def claim_dispatch(self, notification_id: int, *, at: datetime | None = None) -> bool:
        """Mark the notification as dispatched unless someone already did.

        Returns ``True`` only for the caller that wins the claim.
        """

        moment = ensure_app_naive_datetime(at or now_in_app_timezone())
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.dispatched_at.is_(None),
            )
            .update(
                {NotificationModel.dispatched_at: moment},
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated == 1

    def mark_read(self, notification_id: int, *, at: datetime | None = None) -> bool:
        moment = ensure_app_naive_datetime(at or now_in_app_timezone())
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.is_read.is_(False),
                NotificationModel.is_archived.is_(False),
            )
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: moment,
                    NotificationModel.updated_at: moment,
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated == 1

    def mark_many_read(
        self,
        notification_ids: Iterable[int],
        *,
        recipient_id: str,
        at: datetime | None = None,
    ) -> int:
        ids = [notification_id for notification_id in notification_ids if notification_id is not None]
        if not ids:
            return 0
        moment = ensure_app_naive_datetime(at or now_in_app_timezone())
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id.in_(ids),
                NotificationModel.recipient_id == recipient_id,
                NotificationModel.is_read.is_(False),
                NotificationModel.is_archived.is_(False),
            )
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: moment,
                    NotificationModel.updated_at: moment,
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def mark_all_read(self, recipient_id: str, *, at: datetime | None = None) -> int:
        moment = ensure_app_naive_datetime(at or now_in_app_timezone())
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.recipient_id == recipient_id,
                NotificationModel.is_read.is_(False),
                NotificationModel.is_archived.is_(False),
            )
            .update(
                {
                    NotificationModel.is_read: True,
                    NotificationModel.read_at: moment,
                    NotificationModel.updated_at: moment,
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated

    def archive(self, notification_id: int, *, at: datetime | None = None) -> bool:
        moment = ensure_app_naive_datetime(at or now_in_app_timezone())
        updated = (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.id == notification_id,
                NotificationModel.is_archived.is_(False),
            )
            .update(
                {
                    NotificationModel.is_archived: True,
                    NotificationModel.archived_at: moment,
                    NotificationModel.updated_at: moment,
                },
                synchronize_session=False,
            )
        )
        self.session.commit()
        return updated == 1

    def unread_count(self, recipient_id: str) -> int:
        return (
            self.session.query(NotificationModel)
            .filter(
                NotificationModel.recipient_id == recipient_id,
                NotificationModel.is_read.is_(False),
                NotificationModel.is_archived.is_(False),
            )
            .count()
        )

    def list_for_recipient(
        self,
        recipient_id: str,
        *,
        type: NotificationType | None = None,
        is_read: bool | None = None,
        priority: NotificationPriority | None = None,
        include_archived: bool = False,
        offset: int = 0,
        limit: int | None = 20,
    ) -> tuple[Sequence[Notification], int]:
        """Return one page of notifications and the total matching the filter."""

        query = self.session.query(NotificationModel).filter(
            NotificationModel.recipient_id == recipient_id
        )
        if not include_archived:
            query = query.filter(NotificationModel.is_archived.is_(False))
        if type is not None:
            query = query.filter(NotificationModel.type == type.value)
        if is_read is not None:
            query = query.filter(NotificationModel.is_read.is_(is_read))
        if priority is not None:
            query = query.filter(NotificationModel.priority == priority.value)

        total = query.count()
        query = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()], total

    def list_due_ids(self, now: datetime, *, limit: int | None = None) -> list[int]:
        """Return ids of notifications that are due and not dispatched yet.

        A missing ``scheduled_for`` counts as due, which lets the sweep pick up
        immediate notifications whose release was interrupted.
        """

        statement = (
            select(NotificationModel.id)
            .where(
                NotificationModel.dispatched_at.is_(None),
                or_(
                    NotificationModel.scheduled_for.is_(None),
                    NotificationModel.scheduled_for <= ensure_app_naive_datetime(now),
                ),
            )
            .order_by(NotificationModel.scheduled_for.asc(), NotificationModel.id.asc())
        )
        if limit is not None:
            statement = statement.limit(limit)
        return list(self.session.scalars(statement).all())

    def list_retry_candidates(self, *, max_attempts: int) -> list[RetryCandidate]:
        statement = (
            select(NotificationChannelModel)
            .join(NotificationModel)
            .where(
                NotificationModel.dispatched_at.is_not(None),
                NotificationChannelModel.sent.is_(False),
                NotificationChannelModel.error.is_not(None),
                NotificationChannelModel.attempts < max_attempts,
            )
            .order_by(NotificationChannelModel.notification_id.asc())
        )
        return [
            RetryCandidate(
                notification_id=row.notification_id,
                channel=DeliveryChannel(row.channel),
                attempts=row.attempts,
                last_attempt_at=ensure_app_timezone(row.last_attempt_at),
            )
            for row in self.session.scalars(statement).all()
        ]

    def purge_expired(self, now: datetime) -> int:
        """Delete notifications whose ``expires_at`` has passed."""

        cutoff = ensure_app_naive_datetime(now)
        expired_ids = select(NotificationModel.id).where(
            NotificationModel.expires_at.is_not(None),
            NotificationModel.expires_at <= cutoff,
        )
        self.session.execute(
            delete(NotificationChannelModel).where(
                NotificationChannelModel.notification_id.in_(expired_ids)
            )
        )
        result = self.session.execute(
            delete(NotificationModel).where(
                NotificationModel.expires_at.is_not(None),
                NotificationModel.expires_at <= cutoff,
            )
        )
        self.session.commit()
        return result.rowcount or 0

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        channels = {
            DeliveryChannel(row.channel): ChannelStatus(
                sent=bool(row.sent),
                sent_at=ensure_app_timezone(row.sent_at),
                error=row.error,
                attempts=row.attempts or 0,
                last_attempt_at=ensure_app_timezone(row.last_attempt_at),
            )
            for row in sorted(model.channels, key=lambda row: row.channel)
        }
        read_at = ensure_app_timezone(model.read_at)
        return Notification(
            id=model.id,
            recipient_id=model.recipient_id,
            sender_id=model.sender_id,
            type=NotificationType(model.type),
            title=model.title,
            message=model.message,
            data=model.data or {},
            priority=NotificationPriority(model.priority),
            source=NotificationSource(model.source),
            channels=channels,
            in_app=InAppStatus(read=bool(model.is_read), read_at=read_at),
            is_read=bool(model.is_read),
            is_archived=bool(model.is_archived),
            archived_at=ensure_app_timezone(model.archived_at),
            scheduled_for=ensure_app_timezone(model.scheduled_for),
            expires_at=ensure_app_timezone(model.expires_at),
            dispatched_at=ensure_app_timezone(model.dispatched_at),
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["NotificationRepository", "RetryCandidate"]
