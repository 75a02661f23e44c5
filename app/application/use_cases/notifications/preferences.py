"""Read and update a recipient's per-channel notification preferences."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from sqlalchemy.orm import Session

from app.domain.entities import PREFERENCE_CATEGORIES, DeliveryChannel, NotificationPreferences
from app.domain.exceptions import ValidationError
from app.infrastructure.repositories import PreferenceRepository

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _category_key(name: str) -> str:
    """``bookingUpdates`` and ``booking_updates`` name the same category."""

    return _CAMEL_BOUNDARY.sub("_", name).lower()


def get_preferences(session: Session, *, recipient_id: str) -> NotificationPreferences:
    return PreferenceRepository(session).get(recipient_id)


def update_preferences(
    session: Session,
    preferences: Mapping[str, Any],
    *,
    recipient_id: str,
) -> NotificationPreferences:
    """Apply a partial update such as ``{"sms": {"reviews": True}}``.

    Unknown channels or categories and non-boolean values are rejected as a
    whole with :class:`ValidationError`; nothing is stored in that case.
    """

    errors: dict[str, list[str]] = {}
    updates: dict[DeliveryChannel, dict[str, bool]] = {}

    for channel_name, categories in preferences.items():
        try:
            channel = DeliveryChannel(channel_name)
        except ValueError:
            allowed = ", ".join(member.value for member in DeliveryChannel)
            errors.setdefault("preferences", []).append(
                f"'{channel_name}' is not one of: {allowed}"
            )
            continue
        if not isinstance(categories, Mapping):
            errors.setdefault(channel.value, []).append("must be an object")
            continue
        for category_name, enabled in categories.items():
            category = _category_key(str(category_name))
            if category not in PREFERENCE_CATEGORIES:
                errors.setdefault(channel.value, []).append(
                    f"'{category_name}' is not one of: {', '.join(PREFERENCE_CATEGORIES)}"
                )
            elif not isinstance(enabled, bool):
                errors.setdefault(channel.value, []).append(f"'{category_name}' must be a boolean")
            else:
                updates.setdefault(channel, {})[category] = enabled

    if errors:
        raise ValidationError(errors)

    saved = PreferenceRepository(session).save(recipient_id, updates)
    logger.info("Notification preferences of %s updated", recipient_id)
    return saved


__all__ = ["get_preferences", "update_preferences"]
