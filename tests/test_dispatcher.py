"""Tests for the multi-channel fan-out."""

from __future__ import annotations

import logging

import anyio
import pytest

from app.application.use_cases.notifications import NotificationDispatcher, build_draft
from app.domain.entities import (
    OUTCOME_FAILED,
    OUTCOME_SENT,
    OUTCOME_SKIPPED,
    DeliveryChannel,
    Notification,
    NotificationType,
)
from app.domain.exceptions import TransportError
from app.infrastructure.repositories import NotificationRepository

from fakes import FakeEndpoint, RecordingChannelAdapter

pytestmark = pytest.mark.anyio


def _create(session_factory, recipient_id="alice", channels=None):
    draft = build_draft(
        recipient_id=recipient_id,
        type="payment_received",
        title="Payment received",
        message="You received a payment of $40.",
        channels=channels if channels is not None else {"email": True, "sms": True},
    )
    with session_factory() as session:
        return NotificationRepository(session).create(draft)


def _stored(session_factory, notification_id):
    with session_factory() as session:
        return NotificationRepository(session).get(notification_id)


async def test_failing_email_does_not_block_sms(adapters, dispatcher, session_factory) -> None:
    adapters[DeliveryChannel.EMAIL].fail_with = TransportError("SendGrid request failed with status 403")
    notification = _create(session_factory)

    report = await dispatcher.dispatch(notification)

    assert report.outcome_for(DeliveryChannel.EMAIL).status == OUTCOME_FAILED
    assert report.outcome_for(DeliveryChannel.SMS).status == OUTCOME_SENT
    assert report.failed_channels == [DeliveryChannel.EMAIL]

    stored = _stored(session_factory, notification.id)
    email = stored.channels[DeliveryChannel.EMAIL]
    sms = stored.channels[DeliveryChannel.SMS]
    assert email.sent is False
    assert email.error == "SendGrid request failed with status 403"
    assert sms.sent is True
    assert sms.sent_at is not None
    assert adapters[DeliveryChannel.SMS].sent == [(notification.id, "alice")]


async def test_only_requested_channels_are_attempted(adapters, dispatcher, session_factory) -> None:
    notification = _create(session_factory, channels={"push": True, "sms": False})

    report = await dispatcher.dispatch(notification)

    assert [outcome.channel for outcome in report.outcomes] == [DeliveryChannel.PUSH]
    assert adapters[DeliveryChannel.EMAIL].sent == []
    assert adapters[DeliveryChannel.SMS].sent == []
    assert adapters[DeliveryChannel.PUSH].sent == [(notification.id, "alice")]


async def test_missing_contact_is_recorded_per_channel(dispatcher, session_factory) -> None:
    notification = _create(session_factory, "dave", channels={"email": True, "sms": True})

    report = await dispatcher.dispatch(notification)

    assert report.outcome_for(DeliveryChannel.EMAIL).status == OUTCOME_SENT
    sms = report.outcome_for(DeliveryChannel.SMS)
    assert sms.status == OUTCOME_FAILED
    assert sms.error == "Recipient phone number not found"
    assert _stored(session_factory, notification.id).channels[DeliveryChannel.SMS].error == (
        "Recipient phone number not found"
    )


async def test_unknown_recipient_fails_every_channel_without_raising(
    dispatcher, session_factory, caplog
) -> None:
    notification = _create(session_factory, "nobody")

    with caplog.at_level(logging.WARNING):
        report = await dispatcher.dispatch(notification)

    assert {outcome.status for outcome in report.outcomes} == {OUTCOME_FAILED}
    assert all(outcome.error == "Recipient nobody not found" for outcome in report.outcomes)
    assert "Delivery of notification" in caplog.text


async def test_channels_are_attempted_concurrently(directory, session_factory) -> None:
    sms_started = anyio.Event()

    class WaitsForSms(RecordingChannelAdapter):
        async def send(self, notification, contact):
            await sms_started.wait()
            await super().send(notification, contact)

    class SignalsStart(RecordingChannelAdapter):
        async def send(self, notification, contact):
            sms_started.set()
            await super().send(notification, contact)

    dispatcher = NotificationDispatcher(
        {
            DeliveryChannel.EMAIL: WaitsForSms(DeliveryChannel.EMAIL),
            DeliveryChannel.SMS: SignalsStart(DeliveryChannel.SMS),
        },
        directory,
        session_factory,
        attempt_timeout=1,
    )
    notification = _create(session_factory)

    report = await dispatcher.dispatch(notification)

    assert {outcome.status for outcome in report.outcomes} == {OUTCOME_SENT}


async def test_slow_channel_times_out(adapters, directory, session_factory) -> None:
    adapters[DeliveryChannel.PUSH].delay = 5
    dispatcher = NotificationDispatcher(adapters, directory, session_factory, attempt_timeout=0.05)
    notification = _create(session_factory, channels={"push": True, "email": True})

    report = await dispatcher.dispatch(notification)

    push = report.outcome_for(DeliveryChannel.PUSH)
    assert push.status == OUTCOME_FAILED
    assert "timed out" in push.error
    assert report.outcome_for(DeliveryChannel.EMAIL).status == OUTCOME_SENT


async def test_cancelled_caller_does_not_drop_channel_outcomes(
    adapters, dispatcher, session_factory
) -> None:
    adapters[DeliveryChannel.EMAIL].delay = 0.2
    notification = _create(session_factory)

    with anyio.move_on_after(0.05) as scope:
        await dispatcher.dispatch(notification)

    assert scope.cancel_called
    stored = _stored(session_factory, notification.id)
    assert stored.channels[DeliveryChannel.EMAIL].sent is True
    assert stored.channels[DeliveryChannel.EMAIL].attempts == 1
    assert stored.channels[DeliveryChannel.SMS].sent is True
    assert adapters[DeliveryChannel.EMAIL].sent == [(notification.id, "alice")]


async def test_unexpected_adapter_error_is_recorded(adapters, dispatcher, session_factory) -> None:
    adapters[DeliveryChannel.SMS].fail_with = RuntimeError("gateway exploded")
    notification = _create(session_factory)

    report = await dispatcher.dispatch(notification)

    assert report.outcome_for(DeliveryChannel.SMS).error == "gateway exploded"
    assert report.outcome_for(DeliveryChannel.EMAIL).status == OUTCOME_SENT


async def test_missing_adapter_is_recorded(directory, session_factory) -> None:
    dispatcher = NotificationDispatcher({}, directory, session_factory)
    notification = _create(session_factory, channels={"email": True})

    report = await dispatcher.dispatch(notification)

    assert report.outcome_for(DeliveryChannel.EMAIL).error == "No adapter registered for channel email"


async def test_sent_channels_are_skipped_on_redispatch(adapters, dispatcher, session_factory) -> None:
    adapters[DeliveryChannel.EMAIL].fail_with = TransportError("temporary failure")
    notification = _create(session_factory)
    await dispatcher.dispatch(notification)

    adapters[DeliveryChannel.EMAIL].fail_with = None
    report = await dispatcher.dispatch(_stored(session_factory, notification.id))

    assert report.outcome_for(DeliveryChannel.SMS).status == OUTCOME_SKIPPED
    assert report.outcome_for(DeliveryChannel.EMAIL).status == OUTCOME_SENT
    assert len(adapters[DeliveryChannel.SMS].sent) == 1
    stored = _stored(session_factory, notification.id)
    assert stored.channels[DeliveryChannel.EMAIL].attempts == 2
    assert stored.channels[DeliveryChannel.EMAIL].error is None


async def test_explicit_channel_without_row_gets_one(dispatcher, session_factory) -> None:
    notification = _create(session_factory, channels={"email": True})

    report = await dispatcher.dispatch(notification, {DeliveryChannel.PUSH: True})

    assert report.outcome_for(DeliveryChannel.PUSH).status == OUTCOME_SENT
    stored = _stored(session_factory, notification.id)
    assert stored.channels[DeliveryChannel.PUSH].sent is True
    assert stored.channels[DeliveryChannel.EMAIL].sent is False


async def test_dispatch_publishes_realtime_event(
    connections, publisher, dispatcher, session_factory
) -> None:
    endpoint = FakeEndpoint()
    connections.join_recipient("alice", endpoint)
    notification = _create(session_factory)

    await dispatcher.dispatch(notification)
    await publisher.wait_idle()

    assert len(endpoint.messages) == 1
    event = endpoint.messages[0]
    assert event["type"] == "notification"
    assert event["data"]["id"] == notification.id
    assert event["data"]["title"] == "Payment received"
    assert event["unread_count"] == 1


async def test_dispatch_without_publish_stays_silent(
    connections, publisher, dispatcher, session_factory
) -> None:
    endpoint = FakeEndpoint()
    connections.join_recipient("alice", endpoint)
    notification = _create(session_factory)

    await dispatcher.dispatch(notification, publish=False)
    await publisher.wait_idle()

    assert endpoint.messages == []


async def test_unsaved_notification_is_rejected(dispatcher) -> None:
    with pytest.raises(ValueError):
        await dispatcher.dispatch(
            Notification(id=None, recipient_id="alice", type=NotificationType.MESSAGE, title="t", message="m")
        )
