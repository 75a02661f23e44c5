"""Per-recipient opt-in settings for each transport channel."""

from __future__ import annotations

from dataclasses import dataclass, field

from .notification import DeliveryChannel

PREFERENCE_CATEGORIES = ("booking_updates", "reviews", "marketing", "reminders")

DEFAULT_PREFERENCES: dict[DeliveryChannel, dict[str, bool]] = {
    DeliveryChannel.EMAIL: {
        "booking_updates": True,
        "reviews": True,
        "marketing": False,
        "reminders": True,
    },
    DeliveryChannel.SMS: {
        "booking_updates": True,
        "reviews": False,
        "marketing": False,
        "reminders": True,
    },
    DeliveryChannel.PUSH: {
        "booking_updates": True,
        "reviews": True,
        "marketing": False,
        "reminders": True,
    },
}


@dataclass
class NotificationPreferences:
    """Which categories a recipient wants on each channel.

    Categories the recipient never changed keep their default value.
    """

    recipient_id: str
    channels: dict[DeliveryChannel, dict[str, bool]] = field(default_factory=dict)

    @classmethod
    def defaults(cls, recipient_id: str) -> "NotificationPreferences":
        return cls(
            recipient_id=recipient_id,
            channels={channel: dict(values) for channel, values in DEFAULT_PREFERENCES.items()},
        )

    def allows(self, channel: DeliveryChannel, category: str) -> bool:
        return self.channels.get(channel, {}).get(category, False)


__all__ = ["DEFAULT_PREFERENCES", "NotificationPreferences", "PREFERENCE_CATEGORIES"]
