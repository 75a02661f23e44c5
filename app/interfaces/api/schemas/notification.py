"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ChannelSelectionField = dict[str, bool] | list[str] | None


class NotificationContent(BaseModel):
    """Fields shared by single and bulk submissions.

    Enumerated values are accepted as plain strings and checked by the use
    case, so every violation is reported in one ``422`` response.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    type: str
    title: str
    message: str
    channels: ChannelSelectionField = None
    data: dict[str, Any] | None = None
    priority: str | None = None
    source: str | None = None
    scheduled_for: datetime | None = Field(default=None, alias="scheduledFor")
    expires_at: datetime | None = Field(default=None, alias="expiresAt")


class NotificationCreate(NotificationContent):
    recipient_id: str = Field(..., alias="recipientId")


class BulkSendRequest(NotificationContent):
    recipient_ids: list[str] = Field(..., min_length=1, alias="recipientIds")


class NotificationMarkReadRequest(BaseModel):
    """Payload used to mark a batch of notifications as read."""

    ids: list[int] = Field(..., min_length=1)

    def unique_ids(self) -> list[int]:
        return list(dict.fromkeys(self.ids))


class NotificationPreferencesUpdate(BaseModel):
    """Partial update, e.g. ``{"preferences": {"sms": {"reviews": true}}}``."""

    preferences: dict[str, Any]


class NotificationPreferencesRead(BaseModel):
    recipient_id: str
    preferences: dict[str, dict[str, bool]]


class ChannelStatusRead(BaseModel):
    sent: bool
    sent_at: datetime | None = None
    error: str | None = None
    attempts: int = 0
    last_attempt_at: datetime | None = None


class InAppStatusRead(BaseModel):
    read: bool
    read_at: datetime | None = None


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: int
    recipient_id: str
    sender_id: str | None = None
    type: str
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    priority: str
    source: str
    channels: dict[str, ChannelStatusRead] = Field(default_factory=dict)
    in_app: InAppStatusRead
    is_read: bool
    is_archived: bool
    archived_at: datetime | None = None
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    dispatched_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PageInfoRead(BaseModel):
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool


class NotificationPageRead(BaseModel):
    items: list[NotificationRead]
    unread_count: int
    page_info: PageInfoRead


class UnreadCountRead(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class ChannelOutcomeRead(BaseModel):
    channel: str
    status: str
    error: str | None = None


class DispatchReportRead(BaseModel):
    notification_id: int
    outcomes: list[ChannelOutcomeRead] = Field(default_factory=list)


class ProcessDueResponse(BaseModel):
    dispatched: int
    reports: list[DispatchReportRead] = Field(default_factory=list)


class BulkOutcomeRead(BaseModel):
    recipient_id: str
    status: str
    notification_id: int | None = None
    outcomes: list[ChannelOutcomeRead] = Field(default_factory=list)
    error: str | None = None


class BulkSendResponse(BaseModel):
    total: int
    failed: int
    results: list[BulkOutcomeRead]


__all__ = [
    "BulkOutcomeRead",
    "BulkSendRequest",
    "BulkSendResponse",
    "ChannelOutcomeRead",
    "ChannelStatusRead",
    "DispatchReportRead",
    "InAppStatusRead",
    "MarkAllReadResponse",
    "NotificationCreate",
    "NotificationMarkReadRequest",
    "NotificationPageRead",
    "NotificationPreferencesRead",
    "NotificationPreferencesUpdate",
    "NotificationRead",
    "PageInfoRead",
    "ProcessDueResponse",
    "UnreadCountRead",
]
