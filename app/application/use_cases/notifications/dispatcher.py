"""Fan a notification out to its transport channels.

Every requested channel gets its own concurrent attempt: resolve the
recipient's contact data, call the channel adapter, then record the outcome on
that channel's row only. A failing channel is recorded and never prevents the
others from running, and no delivery error ever reaches the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

import anyio
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.entities import (
    OUTCOME_FAILED,
    OUTCOME_SENT,
    OUTCOME_SKIPPED,
    ChannelOutcome,
    DeliveryChannel,
    DispatchReport,
    Notification,
)
from app.domain.exceptions import DeliveryError, TransportError
from app.infrastructure.channels import ChannelAdapter
from app.infrastructure.notifications import NotificationPublisher
from app.infrastructure.recipients import RecipientResolver
from app.infrastructure.repositories import NotificationRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class NotificationDispatcher:
    """Deliver notifications through injected, channel-tagged adapters."""

    def __init__(
        self,
        adapters: Mapping[DeliveryChannel, ChannelAdapter],
        resolver: RecipientResolver,
        session_factory: SessionFactory,
        *,
        publisher: NotificationPublisher | None = None,
        attempt_timeout: float | None = None,
    ) -> None:
        self._adapters = dict(adapters)
        self._resolver = resolver
        self._session_factory = session_factory
        self._publisher = publisher
        self._attempt_timeout = attempt_timeout

    @property
    def session_factory(self) -> SessionFactory:
        return self._session_factory

    async def dispatch(
        self,
        notification: Notification,
        channels: Mapping[DeliveryChannel, bool] | None = None,
        *,
        publish: bool = True,
    ) -> DispatchReport:
        """Attempt every enabled channel of ``channels`` and wait for all of them.

        ``channels`` defaults to the channels requested when the notification
        was created. Channels already marked as sent are skipped. When
        ``publish`` is true the realtime bus is notified without waiting.

        Cancelling the caller only stops its wait once the attempts settle;
        the attempts themselves are bounded by ``attempt_timeout``.
        """

        if notification.id is None:
            raise ValueError("Notification must be persisted before dispatch")

        requested = channels if channels is not None else notification.requested_channels()

        if publish:
            self._publish(notification)

        skipped: list[ChannelOutcome] = []
        pending: list[DeliveryChannel] = []
        for channel, enabled in requested.items():
            if not enabled:
                continue
            channel = DeliveryChannel(channel)
            status = notification.channels.get(channel)
            if status is not None and status.sent:
                logger.info(
                    "Channel %s of notification %s already sent; skipping",
                    channel.value,
                    notification.id,
                )
                skipped.append(ChannelOutcome(channel=channel, status=OUTCOME_SKIPPED))
                continue
            if status is None:
                self._ensure_channel(notification.id, channel)
            pending.append(channel)

        settled: dict[DeliveryChannel, ChannelOutcome] = {}

        async def run(channel: DeliveryChannel) -> None:
            settled[channel] = await self._attempt(notification, channel)

        # Outer cancellation must not drop channel outcomes.
        with anyio.CancelScope(shield=True):
            async with anyio.create_task_group() as group:
                for channel in pending:
                    group.start_soon(run, channel)

        outcomes = skipped + [settled[channel] for channel in pending]
        report = DispatchReport(notification_id=notification.id, outcomes=outcomes)
        logger.info(
            "Notification %s dispatched: %s",
            notification.id,
            ", ".join(f"{o.channel.value}={o.status}" for o in outcomes) or "no channels",
        )
        return report

    async def _attempt(self, notification: Notification, channel: DeliveryChannel) -> ChannelOutcome:
        adapter = self._adapters.get(channel)
        try:
            if adapter is None:
                raise TransportError(f"No adapter registered for channel {channel.value}")
            with anyio.fail_after(self._attempt_timeout):
                contact = await self._resolver.resolve(notification.recipient_id)
                await adapter.send(notification, contact)
        except TimeoutError:
            error = f"{channel.value} delivery timed out after {self._attempt_timeout}s"
        except DeliveryError as exc:
            error = str(exc)
        except Exception as exc:
            logger.exception(
                "Unexpected error delivering notification %s via %s",
                notification.id,
                channel.value,
            )
            error = str(exc) or exc.__class__.__name__
        else:
            self._record(notification.id, channel, sent=True)
            return ChannelOutcome(channel=channel, status=OUTCOME_SENT)

        logger.warning(
            "Delivery of notification %s via %s failed: %s",
            notification.id,
            channel.value,
            error,
        )
        self._record(notification.id, channel, sent=False, error=error)
        return ChannelOutcome(channel=channel, status=OUTCOME_FAILED, error=error)

    def _record(
        self,
        notification_id: int,
        channel: DeliveryChannel,
        *,
        sent: bool,
        error: str | None = None,
    ) -> None:
        try:
            with self._session_factory() as session:
                updated = NotificationRepository(session).update_channel_status(
                    notification_id, channel, sent=sent, error=error
                )
        except SQLAlchemyError:
            logger.exception(
                "Could not record %s outcome for notification %s",
                channel.value,
                notification_id,
            )
            return
        if not updated:
            logger.info(
                "Outcome for %s of notification %s not recorded (already sent or missing)",
                channel.value,
                notification_id,
            )

    def _ensure_channel(self, notification_id: int, channel: DeliveryChannel) -> None:
        try:
            with self._session_factory() as session:
                NotificationRepository(session).ensure_channel(notification_id, channel)
        except SQLAlchemyError:
            logger.exception(
                "Could not add %s channel to notification %s", channel.value, notification_id
            )

    def _publish(self, notification: Notification) -> None:
        if self._publisher is None:
            return
        try:
            with self._session_factory() as session:
                unread = NotificationRepository(session).unread_count(notification.recipient_id)
        except SQLAlchemyError:
            logger.exception("Could not count unread notifications for %s", notification.recipient_id)
            unread = None
        self._publisher.publish(notification, unread_count=unread)


__all__ = ["NotificationDispatcher", "SessionFactory"]
