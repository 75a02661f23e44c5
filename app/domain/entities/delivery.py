"""Results reported by dispatch and bulk send operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .notification import DeliveryChannel, Notification

OUTCOME_SENT = "sent"
OUTCOME_FAILED = "failed"
OUTCOME_SKIPPED = "skipped"


@dataclass(frozen=True)
class ChannelOutcome:
    """Result of a single channel attempt within one dispatch."""

    channel: DeliveryChannel
    status: str
    error: str | None = None


@dataclass
class DispatchReport:
    """Per-channel outcomes of one dispatch call."""

    notification_id: int
    outcomes: list[ChannelOutcome] = field(default_factory=list)

    def outcome_for(self, channel: DeliveryChannel) -> ChannelOutcome | None:
        for outcome in self.outcomes:
            if outcome.channel == channel:
                return outcome
        return None

    @property
    def failed_channels(self) -> list[DeliveryChannel]:
        return [o.channel for o in self.outcomes if o.status == OUTCOME_FAILED]


class BulkStatus(str, Enum):
    DISPATCHED = "dispatched"
    SCHEDULED = "scheduled"
    FAILED = "failed"


@dataclass
class BulkOutcome:
    """What happened to one recipient of a bulk send."""

    recipient_id: str
    status: BulkStatus
    notification: Notification | None = None
    report: DispatchReport | None = None
    error: str | None = None


__all__ = [
    "BulkOutcome",
    "BulkStatus",
    "ChannelOutcome",
    "DispatchReport",
    "OUTCOME_FAILED",
    "OUTCOME_SENT",
    "OUTCOME_SKIPPED",
]
