"""Validation helpers that turn producer submissions into drafts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from app.domain.entities import (
    MESSAGE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    DeliveryChannel,
    NotificationDraft,
    NotificationPriority,
    NotificationSource,
    NotificationType,
)
from app.domain.exceptions import ValidationError
from app.utils import ensure_app_timezone

_IN_APP_KEYS = frozenset({"in_app", "inApp", "inapp"})

EnumT = TypeVar("EnumT", bound=Enum)

ChannelSelection = Mapping[Any, Any] | Iterable[Any] | None


def coerce_enum(
    enum_cls: type[EnumT],
    value: Any,
    field: str,
    errors: dict[str, list[str]],
) -> EnumT | None:
    """Return ``value`` as ``enum_cls`` or record an error for ``field``."""

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        errors.setdefault(field, []).append(f"'{value}' is not one of: {allowed}")
        return None


def parse_channels(channels: ChannelSelection, errors: dict[str, list[str]]) -> list[DeliveryChannel]:
    """Return the requested transport channels, in-app entries excluded.

    Accepts a ``{"email": True, "sms": False}`` mapping or an iterable of
    channel names.
    """

    if channels is None:
        return []

    if isinstance(channels, Mapping):
        requested = [key for key, enabled in channels.items() if enabled]
    elif isinstance(channels, (str, bytes)):
        errors.setdefault("channels", []).append("must be a mapping or a list of channels")
        return []
    else:
        requested = list(channels)

    selected: list[DeliveryChannel] = []
    for key in requested:
        if key in _IN_APP_KEYS:
            continue
        channel = coerce_enum(DeliveryChannel, key, "channels", errors)
        if channel is not None and channel not in selected:
            selected.append(channel)
    return selected


def _clean_text(value: Any, field: str, max_length: int, errors: dict[str, list[str]]) -> str:
    if not isinstance(value, str) or not value.strip():
        errors.setdefault(field, []).append("is required")
        return ""
    text = value.strip()
    if len(text) > max_length:
        errors.setdefault(field, []).append(f"cannot exceed {max_length} characters")
    return text


def _clean_datetime(value: Any, field: str, errors: dict[str, list[str]]) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, datetime):
        errors.setdefault(field, []).append("must be a datetime")
        return None
    return ensure_app_timezone(value)


def _collect_content(
    errors: dict[str, list[str]],
    *,
    type: Any,
    title: Any,
    message: Any,
    channels: ChannelSelection,
    data: Any,
    priority: Any,
    scheduled_for: Any,
    expires_at: Any,
) -> dict[str, Any]:
    notification_type = coerce_enum(NotificationType, type, "type", errors) if type else None
    if type is None or type == "":
        errors.setdefault("type", []).append("is required")

    resolved_priority = (
        NotificationPriority.NORMAL
        if priority in (None, "")
        else coerce_enum(NotificationPriority, priority, "priority", errors)
    )

    if data is None:
        payload: dict[str, Any] = {}
    elif isinstance(data, Mapping):
        payload = dict(data)
    else:
        errors.setdefault("data", []).append("must be an object")
        payload = {}

    scheduled = _clean_datetime(scheduled_for, "scheduled_for", errors)
    expires = _clean_datetime(expires_at, "expires_at", errors)
    if scheduled is not None and expires is not None and expires <= scheduled:
        errors.setdefault("expires_at", []).append("must be later than scheduled_for")

    return {
        "type": notification_type,
        "title": _clean_text(title, "title", TITLE_MAX_LENGTH, errors),
        "message": _clean_text(message, "message", MESSAGE_MAX_LENGTH, errors),
        "channels": parse_channels(channels, errors),
        "data": payload,
        "priority": resolved_priority,
        "scheduled_for": scheduled,
        "expires_at": expires,
    }


def validate_content(**content: Any) -> None:
    """Validate everything but the recipient, raising :class:`ValidationError`."""

    errors: dict[str, list[str]] = {}
    _collect_content(errors, **content)
    if errors:
        raise ValidationError(errors)


def build_draft(
    *,
    recipient_id: Any,
    type: Any,
    title: Any,
    message: Any,
    channels: ChannelSelection = None,
    sender_id: str | None = None,
    data: Any = None,
    priority: Any = None,
    source: Any = None,
    scheduled_for: Any = None,
    expires_at: Any = None,
) -> NotificationDraft:
    """Validate a submission and return a :class:`NotificationDraft`."""

    errors: dict[str, list[str]] = {}

    if not isinstance(recipient_id, str) or not recipient_id.strip():
        errors.setdefault("recipient_id", []).append("is required")
        recipient = ""
    else:
        recipient = recipient_id.strip()

    content = _collect_content(
        errors,
        type=type,
        title=title,
        message=message,
        channels=channels,
        data=data,
        priority=priority,
        scheduled_for=scheduled_for,
        expires_at=expires_at,
    )

    if source in (None, ""):
        resolved_source = NotificationSource.USER if sender_id else NotificationSource.SYSTEM
    else:
        resolved_source = coerce_enum(NotificationSource, source, "source", errors)

    if errors:
        raise ValidationError(errors)

    return NotificationDraft(
        recipient_id=recipient,
        sender_id=sender_id or None,
        source=resolved_source,
        **content,
    )


__all__ = [
    "ChannelSelection",
    "build_draft",
    "coerce_enum",
    "parse_channels",
    "validate_content",
]
