"""Endpoints and websocket handler for notifications."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from app.application.services import NotificationServices
from app.application.use_cases.notifications import (
    acknowledge_notifications,
    archive_notification,
    count_unread,
    get_notification,
    get_preferences,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
    retry_notification,
    update_preferences,
)
from app.domain.entities import (
    BulkOutcome,
    BulkStatus,
    DispatchReport,
    Notification,
    NotificationPreferences,
)
from app.domain.exceptions import AccessDenied, NotificationError, NotificationNotFound, ValidationError
from app.interfaces.api.dependencies import (
    ROLE_ADMIN,
    ROLE_SYSTEM,
    Principal,
    get_current_principal,
    get_db,
    get_services,
    require_roles,
)
from app.interfaces.api.schemas import (
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

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_to_schema(notification: Notification) -> NotificationRead:
    return NotificationRead(
        id=notification.id or 0,
        recipient_id=notification.recipient_id,
        sender_id=notification.sender_id,
        type=notification.type.value,
        title=notification.title,
        message=notification.message,
        data=notification.data or {},
        priority=notification.priority.value,
        source=notification.source.value,
        channels={
            channel.value: ChannelStatusRead(
                sent=channel_status.sent,
                sent_at=channel_status.sent_at,
                error=channel_status.error,
                attempts=channel_status.attempts,
                last_attempt_at=channel_status.last_attempt_at,
            )
            for channel, channel_status in notification.channels.items()
        },
        in_app=InAppStatusRead(
            read=notification.in_app.read, read_at=notification.in_app.read_at
        ),
        is_read=notification.is_read,
        is_archived=notification.is_archived,
        archived_at=notification.archived_at,
        scheduled_for=notification.scheduled_for,
        expires_at=notification.expires_at,
        dispatched_at=notification.dispatched_at,
        created_at=notification.created_at,
        updated_at=notification.updated_at,
    )


def _outcomes_to_schema(report: DispatchReport | None) -> list[ChannelOutcomeRead]:
    if report is None:
        return []
    return [
        ChannelOutcomeRead(channel=o.channel.value, status=o.status, error=o.error)
        for o in report.outcomes
    ]


def _report_to_schema(report: DispatchReport) -> DispatchReportRead:
    return DispatchReportRead(
        notification_id=report.notification_id, outcomes=_outcomes_to_schema(report)
    )


def _bulk_outcome_to_schema(outcome: BulkOutcome) -> BulkOutcomeRead:
    return BulkOutcomeRead(
        recipient_id=outcome.recipient_id,
        status=outcome.status.value,
        notification_id=outcome.notification.id if outcome.notification else None,
        outcomes=_outcomes_to_schema(outcome.report),
        error=outcome.error,
    )


def _to_http_error(exc: NotificationError) -> HTTPException:
    if isinstance(exc, NotificationNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, AccessDenied):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/", response_model=NotificationPageRead)
def list_recipient_notifications(
    page: int = Query(default=1),
    limit: int = Query(default=20),
    type: str | None = Query(default=None),
    is_read: bool | None = Query(default=None),
    priority: str | None = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationPageRead:
    """Return the caller's notifications, newest first."""

    try:
        result = list_notifications(
            db,
            recipient_id=principal.user_id,
            page=page,
            limit=limit,
            type=type,
            is_read=is_read,
            priority=priority,
        )
    except ValidationError as exc:
        raise _to_http_error(exc) from exc

    info = result.page_info
    return NotificationPageRead(
        items=[_notification_to_schema(item) for item in result.items],
        unread_count=result.unread_count,
        page_info=PageInfoRead(
            page=info.page,
            limit=info.limit,
            total=info.total,
            pages=info.pages,
            has_next=info.has_next,
        ),
    )


@router.get("/unread-count", response_model=UnreadCountRead)
def unread_count(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> UnreadCountRead:
    return UnreadCountRead(unread_count=count_unread(db, recipient_id=principal.user_id))


@router.patch("/mark-all-read", response_model=MarkAllReadResponse)
def mark_all_read(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> MarkAllReadResponse:
    updated = mark_all_notifications_read(db, recipient_id=principal.user_id)
    return MarkAllReadResponse(updated=updated)


def _preferences_to_schema(preferences: NotificationPreferences) -> NotificationPreferencesRead:
    return NotificationPreferencesRead(
        recipient_id=preferences.recipient_id,
        preferences={
            channel.value: dict(categories)
            for channel, categories in preferences.channels.items()
        },
    )


@router.get("/preferences", response_model=NotificationPreferencesRead)
def read_preferences(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationPreferencesRead:
    """Return the caller's channel preferences, defaults included."""

    return _preferences_to_schema(get_preferences(db, recipient_id=principal.user_id))


@router.put("/preferences", response_model=NotificationPreferencesRead)
def replace_preferences(
    payload: NotificationPreferencesUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationPreferencesRead:
    try:
        preferences = update_preferences(
            db, payload.preferences, recipient_id=principal.user_id
        )
    except ValidationError as exc:
        raise _to_http_error(exc) from exc
    return _preferences_to_schema(preferences)


@router.patch("/read", response_model=MarkAllReadResponse)
def mark_selected_read(
    payload: NotificationMarkReadRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> MarkAllReadResponse:
    """Mark a batch of the caller's notifications as read."""

    updated = acknowledge_notifications(
        db, payload.unique_ids(), recipient_id=principal.user_id
    )
    return MarkAllReadResponse(updated=updated)


@router.post("/process-due", response_model=ProcessDueResponse)
async def process_due_notifications(
    services: NotificationServices = Depends(get_services),
    _: Principal = Depends(require_roles(ROLE_ADMIN, ROLE_SYSTEM)),
) -> ProcessDueResponse:
    """Release every scheduled notification that is due."""

    reports = await services.scheduler.process_due()
    return ProcessDueResponse(
        dispatched=len(reports),
        reports=[_report_to_schema(report) for report in reports],
    )


@router.post("/bulk", response_model=BulkSendResponse)
async def bulk_send_notifications(
    payload: BulkSendRequest,
    services: NotificationServices = Depends(get_services),
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
) -> BulkSendResponse:
    """Send the same notification to many recipients."""

    content = payload.model_dump(exclude={"recipient_ids"})
    try:
        outcomes = await services.scheduler.bulk_send(
            payload.recipient_ids, sender_id=principal.user_id, **content
        )
    except ValidationError as exc:
        raise _to_http_error(exc) from exc

    return BulkSendResponse(
        total=len(outcomes),
        failed=sum(1 for outcome in outcomes if outcome.status is BulkStatus.FAILED),
        results=[_bulk_outcome_to_schema(outcome) for outcome in outcomes],
    )


@router.post("/", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
async def create_notification(
    payload: NotificationCreate,
    services: NotificationServices = Depends(get_services),
    principal: Principal = Depends(require_roles(ROLE_ADMIN, ROLE_SYSTEM)),
) -> NotificationRead:
    """Create a notification and dispatch it unless it is scheduled for later."""

    sender_id = None if principal.role == ROLE_SYSTEM else principal.user_id
    try:
        notification = await services.scheduler.submit(
            sender_id=sender_id, **payload.model_dump()
        )
    except ValidationError as exc:
        raise _to_http_error(exc) from exc
    return _notification_to_schema(notification)


@router.get("/{notification_id}", response_model=NotificationRead)
def read_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationRead:
    try:
        notification = get_notification(
            db,
            notification_id,
            recipient_id=principal.user_id,
            is_admin=principal.is_admin(),
        )
    except (NotificationNotFound, AccessDenied) as exc:
        raise _to_http_error(exc) from exc
    return _notification_to_schema(notification)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationRead:
    try:
        notification = mark_notification_read(
            db,
            notification_id,
            recipient_id=principal.user_id,
            is_admin=principal.is_admin(),
        )
    except (NotificationNotFound, AccessDenied) as exc:
        raise _to_http_error(exc) from exc
    return _notification_to_schema(notification)


@router.patch("/{notification_id}/archive", response_model=NotificationRead)
def archive(
    notification_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> NotificationRead:
    try:
        notification = archive_notification(
            db,
            notification_id,
            recipient_id=principal.user_id,
            is_admin=principal.is_admin(),
        )
    except (NotificationNotFound, AccessDenied) as exc:
        raise _to_http_error(exc) from exc
    return _notification_to_schema(notification)


@router.post("/{notification_id}/retry", response_model=DispatchReportRead)
async def retry(
    notification_id: int,
    services: NotificationServices = Depends(get_services),
    _: Principal = Depends(require_roles(ROLE_ADMIN, ROLE_SYSTEM)),
) -> DispatchReportRead:
    """Re-attempt the failed channels of one notification."""

    try:
        report = await retry_notification(
            services.dispatcher, notification_id, policy=services.retry_policy
        )
    except NotificationNotFound as exc:
        raise _to_http_error(exc) from exc
    return _report_to_schema(report)


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Stream realtime notification events to one recipient.

    The client declares who it is with ``{"type": "join", "recipient_id": ...}``
    once. When the gateway forwarded an identity header it must match, unless
    the caller is an admin.
    """

    services: NotificationServices | None = getattr(
        websocket.app.state, "notification_services", None
    )
    if services is None:
        await websocket.close(code=1011)
        return

    header_user = (websocket.headers.get("x-user-id") or "").strip() or None
    header_role = (websocket.headers.get("x-user-role") or "").strip().lower()

    await websocket.accept()
    manager = services.connections
    recipient_id: str | None = None
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
            if frame.get("text") is None:
                await websocket.send_json({"type": "error", "detail": "Only text frames are supported"})
                continue
            try:
                message = json.loads(frame["text"])
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "join":
                requested = str(message.get("recipient_id") or "").strip()
                if recipient_id is not None:
                    await websocket.send_json({"type": "error", "detail": "Already joined"})
                    continue
                if not requested:
                    await websocket.send_json({"type": "error", "detail": "recipient_id is required"})
                    continue
                if header_user and header_user != requested and header_role != ROLE_ADMIN:
                    await websocket.close(code=1008)
                    return
                recipient_id = requested
                manager.join_recipient(recipient_id, websocket)
                with services.session_factory() as session:
                    unread = count_unread(session, recipient_id=recipient_id)
                await websocket.send_json(
                    {"type": "joined", "recipient_id": recipient_id, "unread_count": unread}
                )
                continue

            if message_type == "ack" and recipient_id is not None:
                ids = message.get("ids")
                if not isinstance(ids, list):
                    continue
                valid_ids = [
                    value for value in ids if isinstance(value, int) and not isinstance(value, bool)
                ]
                if valid_ids:
                    with services.session_factory() as session:
                        acknowledge_notifications(session, valid_ids, recipient_id=recipient_id)
                continue
    except WebSocketDisconnect:
        logger.debug("Realtime endpoint for %s disconnected", recipient_id)
    finally:
        if recipient_id is not None:
            manager.disconnect(recipient_id, websocket)


__all__ = ["router"]
