"""Contract shared by every transport channel adapter."""

from __future__ import annotations

from typing import Protocol

from app.domain.entities import DeliveryChannel, Notification, RecipientContact
from app.domain.exceptions import ContactMissing

_MISSING_MESSAGES = {
    DeliveryChannel.EMAIL: "Recipient email not found",
    DeliveryChannel.SMS: "Recipient phone number not found",
    DeliveryChannel.PUSH: "No device tokens found for recipient",
}


class ChannelAdapter(Protocol):
    """Deliver a notification over one transport.

    ``send`` returns on success and raises a ``DeliveryError`` subclass
    (``ContactMissing`` or ``TransportError``) on failure.
    """

    channel: DeliveryChannel

    async def send(self, notification: Notification, contact: RecipientContact) -> None:
        ...


def contact_address(channel: DeliveryChannel, contact: RecipientContact) -> str | tuple[str, ...]:
    """Return the address ``channel`` needs from ``contact``.

    Raises :class:`ContactMissing` when the recipient has none on file.
    """

    if channel is DeliveryChannel.EMAIL:
        address: str | tuple[str, ...] | None = contact.email
    elif channel is DeliveryChannel.SMS:
        address = contact.phone
    else:
        address = contact.device_tokens
    if not address:
        raise ContactMissing(_MISSING_MESSAGES[channel])
    return address


__all__ = ["ChannelAdapter", "contact_address"]
