"""Errors raised by the notification domain."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for every notification related failure."""


class ValidationError(NotificationError, ValueError):
    """Raised when a submission violates a required field, enum or length rule."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        details = "; ".join(
            f"{field}: {', '.join(messages)}" for field, messages in errors.items()
        )
        super().__init__(details or "Invalid notification")


class NotificationNotFound(NotificationError, LookupError):
    """Raised when a notification id does not exist."""

    def __init__(self, notification_id: int) -> None:
        self.notification_id = notification_id
        super().__init__(f"Notification {notification_id} not found")


class AccessDenied(NotificationError, PermissionError):
    """Raised when someone other than the recipient acts on a notification."""


class DeliveryError(NotificationError):
    """Per-channel delivery failure. Recorded on the channel, never propagated."""


class RecipientNotFound(DeliveryError):
    """The identity collaborator does not know the recipient."""

    def __init__(self, recipient_id: str) -> None:
        self.recipient_id = recipient_id
        super().__init__(f"Recipient {recipient_id} not found")


class ContactMissing(DeliveryError):
    """The recipient exists but has no contact data for the channel."""


class TransportError(DeliveryError):
    """The transport provider rejected or failed the delivery."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


__all__ = [
    "AccessDenied",
    "ContactMissing",
    "DeliveryError",
    "NotificationError",
    "NotificationNotFound",
    "RecipientNotFound",
    "TransportError",
    "ValidationError",
]
