"""Contact data resolved for a notification recipient."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RecipientContact:
    """Where a recipient can be reached on each transport channel."""

    recipient_id: str
    email: str | None = None
    phone: str | None = None
    device_tokens: tuple[str, ...] = field(default_factory=tuple)
    name: str | None = None


__all__ = ["RecipientContact"]
