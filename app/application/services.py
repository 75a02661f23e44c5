"""Wiring of the notification delivery components.

Everything with a lifetime (transport clients, the realtime connection
registry, background publishing tasks) hangs off one
:class:`NotificationServices` instance created at application start-up and
closed at shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from app.application.use_cases.notifications import (
    NotificationDispatcher,
    RetryPolicy,
    SchedulerGate,
    SessionFactory,
)
from app.config import Settings, get_settings
from app.domain.entities import DeliveryChannel
from app.infrastructure.channels import (
    ChannelAdapter,
    build_channel_adapters,
    close_channel_adapters,
)
from app.infrastructure.notifications import (
    NotificationConnectionManager,
    NotificationPublisher,
)
from app.infrastructure.recipients import (
    HttpRecipientResolver,
    InMemoryRecipientDirectory,
    RecipientResolver,
)

logger = logging.getLogger(__name__)


@dataclass
class NotificationServices:
    settings: Settings
    session_factory: SessionFactory
    adapters: dict[DeliveryChannel, ChannelAdapter]
    resolver: RecipientResolver
    connections: NotificationConnectionManager
    publisher: NotificationPublisher
    dispatcher: NotificationDispatcher
    scheduler: SchedulerGate
    retry_policy: RetryPolicy

    async def aclose(self) -> None:
        """Flush pending realtime events and release transport clients."""

        await self.publisher.wait_idle()
        self.connections.clear()
        await close_channel_adapters(self.adapters)
        aclose = getattr(self.resolver, "aclose", None)
        if aclose is not None:
            await aclose()


def build_recipient_resolver(settings: Settings) -> RecipientResolver:
    if settings.identity_service_url:
        return HttpRecipientResolver(
            settings.identity_service_url,
            timeout=settings.identity_service_timeout,
        )
    logger.warning(
        "IDENTITY_SERVICE_URL not configured; using an empty in-memory recipient directory"
    )
    return InMemoryRecipientDirectory()


def build_notification_services(
    session_factory: SessionFactory,
    settings: Settings | None = None,
    *,
    adapters: Mapping[DeliveryChannel, ChannelAdapter] | None = None,
    resolver: RecipientResolver | None = None,
) -> NotificationServices:
    """Assemble the delivery pipeline, defaulting collaborators from ``settings``."""

    settings = settings or get_settings()
    channel_adapters = dict(adapters) if adapters is not None else build_channel_adapters(settings)
    recipient_resolver = resolver or build_recipient_resolver(settings)

    connections = NotificationConnectionManager(send_timeout=settings.channel_timeout_seconds)
    publisher = NotificationPublisher(connections)
    dispatcher = NotificationDispatcher(
        channel_adapters,
        recipient_resolver,
        session_factory,
        publisher=publisher,
        attempt_timeout=settings.channel_timeout_seconds,
    )
    return NotificationServices(
        settings=settings,
        session_factory=session_factory,
        adapters=channel_adapters,
        resolver=recipient_resolver,
        connections=connections,
        publisher=publisher,
        dispatcher=dispatcher,
        scheduler=SchedulerGate(dispatcher),
        retry_policy=RetryPolicy.from_settings(settings),
    )


__all__ = [
    "NotificationServices",
    "build_notification_services",
    "build_recipient_resolver",
]
