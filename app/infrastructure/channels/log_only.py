"""Fallback channel for transports that are not configured."""

from __future__ import annotations

import logging

from app.domain.entities import DeliveryChannel, Notification, RecipientContact

from .base import contact_address

logger = logging.getLogger(__name__)


class LogOnlyChannelAdapter:
    """Logs the delivery instead of sending it, and reports success.

    Contact data is still checked, so a recipient without an address for the
    channel fails the same way it would against a real transport.
    """

    def __init__(self, channel: DeliveryChannel) -> None:
        self.channel = channel

    async def send(self, notification: Notification, contact: RecipientContact) -> None:
        address = contact_address(self.channel, contact)
        logger.info(
            "notify %s via %s (%s): %s",
            notification.recipient_id,
            self.channel.value,
            address,
            notification.title,
        )


__all__ = ["LogOnlyChannelAdapter"]
