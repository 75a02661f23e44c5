"""Email channel backed by SendGrid."""

from __future__ import annotations

import functools

import anyio

from app.domain.entities import DeliveryChannel, Notification, RecipientContact
from app.infrastructure.email import render_notification_html, send_email

from .base import contact_address


class SendGridEmailAdapter:
    channel = DeliveryChannel.EMAIL

    async def send(self, notification: Notification, contact: RecipientContact) -> None:
        address = contact_address(self.channel, contact)
        html_content = render_notification_html(
            notification.title, notification.message, contact.name
        )
        # The SendGrid SDK is blocking.
        await anyio.to_thread.run_sync(
            functools.partial(send_email, notification.title, html_content, address)
        )


__all__ = ["SendGridEmailAdapter"]
