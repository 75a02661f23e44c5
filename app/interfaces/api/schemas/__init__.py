from .health import HealthRead
from .notification import (
    BulkOutcomeRead,
    BulkSendRequest,
    BulkSendResponse,
    ChannelOutcomeRead,
    ChannelStatusRead,
    DispatchReportRead,
    InAppStatusRead,
    MarkAllReadResponse,
    NotificationCreate,
    NotificationMarkReadRequest,
    NotificationPageRead,
    NotificationPreferencesRead,
    NotificationPreferencesUpdate,
    NotificationRead,
    PageInfoRead,
    ProcessDueResponse,
    UnreadCountRead,
)

__all__ = [
    "BulkOutcomeRead",
    "BulkSendRequest",
    "BulkSendResponse",
    "ChannelOutcomeRead",
    "ChannelStatusRead",
    "DispatchReportRead",
    "HealthRead",
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
