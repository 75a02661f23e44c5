"""Tests for immediate vs deferred release, the due sweep and bulk send."""

from __future__ import annotations

from datetime import timedelta

import anyio
import pytest

from app.domain.entities import OUTCOME_FAILED, OUTCOME_SENT, BulkStatus, DeliveryChannel
from app.domain.exceptions import ValidationError
from app.infrastructure.repositories import NotificationRepository
from app.utils import now_in_app_timezone

pytestmark = pytest.mark.anyio


def _content(**overrides):
    values = {
        "type": "booking_reminder",
        "title": "Booking tomorrow",
        "message": "Reminder: your cleaning is tomorrow at 10:00.",
        "channels": {"email": True, "sms": True},
    }
    values.update(overrides)
    return values


def _stored(session_factory, notification_id):
    with session_factory() as session:
        return NotificationRepository(session).get(notification_id)


async def test_submit_returns_record_as_created_and_dispatches(
    adapters, scheduler, session_factory
) -> None:
    notification = await scheduler.submit(recipient_id="alice", **_content())

    assert set(notification.channels) == {DeliveryChannel.EMAIL, DeliveryChannel.SMS}
    assert all(status.sent is False for status in notification.channels.values())

    stored = _stored(session_factory, notification.id)
    assert stored.dispatched_at is not None
    assert stored.channels[DeliveryChannel.EMAIL].sent is True
    assert stored.channels[DeliveryChannel.SMS].sent is True
    assert adapters[DeliveryChannel.EMAIL].sent == [(notification.id, "alice")]


async def test_submit_records_outcomes_when_caller_stops_waiting(
    adapters, scheduler, session_factory
) -> None:
    adapters[DeliveryChannel.SMS].delay = 0.2

    with anyio.move_on_after(0.05) as scope:
        await scheduler.submit(recipient_id="alice", **_content())

    assert scope.cancel_called
    with session_factory() as session:
        items, total = NotificationRepository(session).list_for_recipient("alice")
    assert total == 1
    stored = _stored(session_factory, items[0].id)
    assert stored.dispatched_at is not None
    assert stored.channels[DeliveryChannel.SMS].sent is True
    assert stored.channels[DeliveryChannel.EMAIL].sent is True


async def test_submit_rejects_invalid_payload_before_creating(scheduler, session_factory) -> None:
    with pytest.raises(ValidationError):
        await scheduler.submit(recipient_id="alice", **_content(title=""))

    with session_factory() as session:
        assert NotificationRepository(session).list_for_recipient("alice")[1] == 0


async def test_past_schedule_is_dispatched_immediately(adapters, scheduler, session_factory) -> None:
    past = now_in_app_timezone() - timedelta(minutes=1)

    notification = await scheduler.submit(recipient_id="bob", **_content(scheduled_for=past))

    assert _stored(session_factory, notification.id).dispatched_at is not None
    assert len(adapters[DeliveryChannel.SMS].sent) == 1


async def test_deferred_notification_is_dispatched_exactly_once(
    adapters, scheduler, session_factory
) -> None:
    now = now_in_app_timezone()
    notification = await scheduler.submit(
        recipient_id="alice",
        now=now,
        **_content(scheduled_for=now + timedelta(hours=1)),
    )

    assert _stored(session_factory, notification.id).dispatched_at is None
    assert adapters[DeliveryChannel.EMAIL].sent == []

    assert await scheduler.process_due(now=now + timedelta(minutes=30)) == []
    assert adapters[DeliveryChannel.EMAIL].sent == []

    later = now + timedelta(hours=2)
    reports = await scheduler.process_due(now=later)
    assert [report.notification_id for report in reports] == [notification.id]

    assert await scheduler.process_due(now=later) == []
    assert await scheduler.process_due(now=later + timedelta(days=1)) == []

    assert adapters[DeliveryChannel.EMAIL].sent == [(notification.id, "alice")]
    assert adapters[DeliveryChannel.SMS].sent == [(notification.id, "alice")]
    stored = _stored(session_factory, notification.id)
    assert stored.dispatched_at is not None
    assert stored.channels[DeliveryChannel.EMAIL].sent is True


async def test_release_of_already_released_notification_is_a_no_op(
    adapters, scheduler, session_factory
) -> None:
    notification = await scheduler.submit(recipient_id="alice", **_content())

    report = await scheduler.release(notification)

    assert report is None
    assert len(adapters[DeliveryChannel.EMAIL].sent) == 1


async def test_bulk_send_isolates_failing_recipient(adapters, scheduler, session_factory) -> None:
    outcomes = await scheduler.bulk_send(["alice", "nobody", "carol"], **_content())

    assert [outcome.recipient_id for outcome in outcomes] == ["alice", "nobody", "carol"]
    assert all(outcome.status is BulkStatus.DISPATCHED for outcome in outcomes)

    alice, nobody, carol = outcomes
    assert {o.status for o in alice.report.outcomes} == {OUTCOME_SENT}
    assert {o.status for o in carol.report.outcomes} == {OUTCOME_SENT}
    assert {o.status for o in nobody.report.outcomes} == {OUTCOME_FAILED}

    stored = _stored(session_factory, nobody.notification.id)
    assert stored.channels[DeliveryChannel.EMAIL].error == "Recipient nobody not found"
    assert sorted(recipient for _, recipient in adapters[DeliveryChannel.EMAIL].sent) == [
        "alice",
        "carol",
    ]


async def test_bulk_send_reports_creation_failure_per_recipient(adapters, scheduler) -> None:
    outcomes = await scheduler.bulk_send(["alice", "  ", "carol"], **_content())

    assert [outcome.status for outcome in outcomes] == [
        BulkStatus.DISPATCHED,
        BulkStatus.FAILED,
        BulkStatus.DISPATCHED,
    ]
    failed = outcomes[1]
    assert failed.notification is None
    assert "recipient_id" in failed.error
    assert len(adapters[DeliveryChannel.SMS].sent) == 2


async def test_bulk_send_validates_shared_content_up_front(scheduler, session_factory) -> None:
    with pytest.raises(ValidationError):
        await scheduler.bulk_send(["alice", "bob"], **_content(type="spam"))

    with session_factory() as session:
        repository = NotificationRepository(session)
        assert repository.unread_count("alice") == 0
        assert repository.unread_count("bob") == 0


async def test_bulk_send_deduplicates_and_schedules(adapters, scheduler) -> None:
    later = now_in_app_timezone() + timedelta(days=1)

    outcomes = await scheduler.bulk_send(
        ["alice", "bob", "alice"], sender_id="provider-1", **_content(scheduled_for=later)
    )

    assert [outcome.recipient_id for outcome in outcomes] == ["alice", "bob"]
    assert all(outcome.status is BulkStatus.SCHEDULED for outcome in outcomes)
    assert all(outcome.report is None for outcome in outcomes)
    assert outcomes[0].notification.sender_id == "provider-1"
    assert adapters[DeliveryChannel.EMAIL].sent == []
