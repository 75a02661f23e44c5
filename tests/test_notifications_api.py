"""Integration tests for the notification API endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest

from fastapi.testclient import TestClient

from app.application.services import build_notification_services
from app.config import Settings
from app.domain.entities import DeliveryChannel
from app.domain.exceptions import TransportError
from app.utils import now_in_app_timezone

SYSTEM = {"X-User-Id": "booking-service", "X-User-Role": "system"}
ADMIN = {"X-User-Id": "root", "X-User-Role": "admin"}
ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


@pytest.fixture
def services(session_factory, adapters, directory):
    settings = Settings(
        _env_file=None,
        dispatch_sweep_interval_seconds=0,
        channel_timeout_seconds=2,
    )
    return build_notification_services(
        session_factory, settings, adapters=adapters, resolver=directory
    )


@pytest.fixture
def client(services):
    from main import create_app

    app = create_app(services)
    with TestClient(app) as test_client:
        yield test_client


def _payload(**overrides):
    values = {
        "recipientId": "alice",
        "type": "booking_confirmed",
        "title": "Booking confirmed",
        "message": "Your booking for Friday is confirmed.",
        "channels": {"email": True, "sms": True, "inApp": True},
    }
    values.update(overrides)
    return values


def _create(client, **overrides) -> dict:
    response = client.post("/notifications/", json=_payload(**overrides), headers=SYSTEM)
    assert response.status_code == 201, response.text
    return response.json()


def test_health_lists_features(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert {"in_app", "realtime", "email", "sms", "push"} <= set(body["features"])


def test_create_dispatches_and_returns_initial_state(client: TestClient, adapters) -> None:
    created = _create(client)

    assert created["recipient_id"] == "alice"
    assert created["source"] == "system"
    assert created["sender_id"] is None
    assert set(created["channels"]) == {"email", "sms"}
    assert all(status["sent"] is False for status in created["channels"].values())
    assert adapters[DeliveryChannel.EMAIL].sent == [(created["id"], "alice")]

    stored = client.get(f"/notifications/{created['id']}", headers=ALICE).json()
    assert stored["channels"]["email"]["sent"] is True
    assert stored["dispatched_at"] is not None


def test_create_records_channel_failures(client: TestClient, adapters) -> None:
    adapters[DeliveryChannel.EMAIL].fail_with = TransportError("mailbox unavailable")

    created = _create(client)

    stored = client.get(f"/notifications/{created['id']}", headers=ALICE).json()
    assert stored["channels"]["email"] == {
        "sent": False,
        "sent_at": None,
        "error": "mailbox unavailable",
        "attempts": 1,
        "last_attempt_at": stored["channels"]["email"]["last_attempt_at"],
    }
    assert stored["channels"]["sms"]["sent"] is True


def test_create_requires_identity_and_role(client: TestClient) -> None:
    assert client.post("/notifications/", json=_payload()).status_code == 401
    assert client.post("/notifications/", json=_payload(), headers=ALICE).status_code == 403


def test_create_rejects_invalid_submission(client: TestClient) -> None:
    response = client.post(
        "/notifications/",
        json=_payload(type="unknown", title="x" * 150),
        headers=SYSTEM,
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert set(detail) == {"type", "title"}


def test_admin_sender_is_recorded(client: TestClient) -> None:
    response = client.post("/notifications/", json=_payload(), headers=ADMIN)

    assert response.status_code == 201
    assert response.json()["sender_id"] == "root"
    assert response.json()["source"] == "user"


def test_list_and_unread_count(client: TestClient) -> None:
    first = _create(client)
    second = _create(client, type="message", priority="high")
    _create(client, recipientId="bob")

    response = client.get("/notifications/", headers=ALICE)

    assert response.status_code == 200
    body = response.json()
    assert [item["id"] for item in body["items"]] == [second["id"], first["id"]]
    assert body["unread_count"] == 2
    assert body["page_info"] == {"page": 1, "limit": 20, "total": 2, "pages": 1, "has_next": False}

    filtered = client.get("/notifications/", params={"type": "message"}, headers=ALICE).json()
    assert [item["id"] for item in filtered["items"]] == [second["id"]]

    assert client.get("/notifications/unread-count", headers=BOB).json() == {"unread_count": 1}
    assert client.get("/notifications/", params={"limit": 500}, headers=ALICE).status_code == 422


def test_read_archive_and_access_checks(client: TestClient) -> None:
    created = _create(client)
    url = f"/notifications/{created['id']}"

    assert client.get(url, headers=BOB).status_code == 403
    assert client.patch(f"{url}/read", headers=BOB).status_code == 403
    assert client.get("/notifications/999", headers=ALICE).status_code == 404

    read = client.patch(f"{url}/read", headers=ALICE)
    assert read.status_code == 200
    assert read.json()["is_read"] is True
    assert read.json()["in_app"]["read"] is True

    archived = client.patch(f"{url}/archive", headers=ALICE)
    again = client.patch(f"{url}/archive", headers=ALICE)
    assert archived.status_code == again.status_code == 200
    assert again.json()["archived_at"] == archived.json()["archived_at"]

    assert client.get("/notifications/", headers=ALICE).json()["items"] == []
    assert client.get(url, headers=ADMIN).status_code == 200


def test_mark_all_read_and_batch_read(client: TestClient) -> None:
    mine = [_create(client) for _ in range(3)]
    theirs = _create(client, recipientId="bob")

    batch = client.patch(
        "/notifications/read", json={"ids": [mine[0]["id"], theirs["id"]]}, headers=ALICE
    )
    assert batch.json() == {"updated": 1}

    response = client.patch("/notifications/mark-all-read", headers=ALICE)
    assert response.json() == {"updated": 2}
    assert client.get("/notifications/unread-count", headers=ALICE).json() == {"unread_count": 0}
    assert client.get("/notifications/unread-count", headers=BOB).json() == {"unread_count": 1}


def test_scheduled_notification_waits_for_process_due(client: TestClient, adapters) -> None:
    later = (now_in_app_timezone() + timedelta(hours=1)).isoformat()
    created = _create(client, scheduledFor=later)

    assert created["dispatched_at"] is None
    assert adapters[DeliveryChannel.EMAIL].sent == []

    response = client.post("/notifications/process-due", headers=SYSTEM)
    assert response.json() == {"dispatched": 0, "reports": []}
    assert client.post("/notifications/process-due", headers=ALICE).status_code == 403


def test_bulk_send_reports_each_recipient(client: TestClient) -> None:
    body = _payload()
    body.pop("recipientId")
    body["recipientIds"] = ["alice", "nobody", "carol"]

    response = client.post("/notifications/bulk", json=body, headers=ADMIN)

    assert response.status_code == 200
    result = response.json()
    assert result["total"] == 3
    assert result["failed"] == 0
    by_recipient = {item["recipient_id"]: item for item in result["results"]}
    assert {o["status"] for o in by_recipient["alice"]["outcomes"]} == {"sent"}
    assert {o["status"] for o in by_recipient["nobody"]["outcomes"]} == {"failed"}
    assert {o["status"] for o in by_recipient["carol"]["outcomes"]} == {"sent"}

    assert client.post("/notifications/bulk", json=body, headers=SYSTEM).status_code == 403


def test_retry_endpoint_reattempts_failed_channel(client: TestClient, adapters) -> None:
    adapters[DeliveryChannel.SMS].fail_with = TransportError("gateway busy")
    created = _create(client)
    adapters[DeliveryChannel.SMS].fail_with = None

    response = client.post(f"/notifications/{created['id']}/retry", headers=SYSTEM)

    assert response.status_code == 200
    assert response.json() == {
        "notification_id": created["id"],
        "outcomes": [{"channel": "sms", "status": "sent", "error": None}],
    }
    assert client.post("/notifications/999/retry", headers=SYSTEM).status_code == 404


def test_websocket_join_ping_and_live_event(client: TestClient) -> None:
    with client.websocket_connect("/notifications/ws") as websocket:
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        websocket.send_json({"type": "join", "recipient_id": "alice"})
        joined = websocket.receive_json()
        assert joined == {"type": "joined", "recipient_id": "alice", "unread_count": 0}

        created = _create(client)

        event = websocket.receive_json()
        assert event["type"] == "notification"
        assert event["data"]["id"] == created["id"]
        assert event["unread_count"] == 1

        websocket.send_json({"type": "ack", "ids": [created["id"]]})
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

    assert client.get("/notifications/unread-count", headers=ALICE).json() == {"unread_count": 0}


def test_websocket_rejects_join_for_other_recipient(client: TestClient) -> None:
    from starlette.websockets import WebSocketDisconnect

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/notifications/ws", headers=BOB) as websocket:
            websocket.send_json({"type": "join", "recipient_id": "alice"})
            websocket.receive_json()

    assert exc_info.value.code == 1008


def test_websocket_survives_binary_frames_and_ignores_boolean_ids(client: TestClient) -> None:
    created = _create(client)

    with client.websocket_connect("/notifications/ws") as websocket:
        websocket.send_bytes(b"\x00\x01")
        assert websocket.receive_json() == {
            "type": "error",
            "detail": "Only text frames are supported",
        }

        websocket.send_json({"type": "join", "recipient_id": "alice"})
        assert websocket.receive_json()["unread_count"] == 1

        websocket.send_json({"type": "ack", "ids": [True]})
        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

    assert created["id"] == 1
    assert client.get("/notifications/unread-count", headers=ALICE).json() == {"unread_count": 1}


def test_preferences_round_trip(client: TestClient) -> None:
    defaults = client.get("/notifications/preferences", headers=ALICE)
    assert defaults.status_code == 200
    assert defaults.json()["preferences"]["sms"]["reviews"] is False

    updated = client.put(
        "/notifications/preferences",
        json={"preferences": {"sms": {"reviews": True}}},
        headers=ALICE,
    )
    assert updated.status_code == 200
    assert updated.json() == {
        "recipient_id": "alice",
        "preferences": {
            "email": {"booking_updates": True, "reviews": True, "marketing": False, "reminders": True},
            "sms": {"booking_updates": True, "reviews": True, "marketing": False, "reminders": True},
            "push": {"booking_updates": True, "reviews": True, "marketing": False, "reminders": True},
        },
    }

    rejected = client.put(
        "/notifications/preferences", json={"preferences": {"fax": {}}}, headers=ALICE
    )
    assert rejected.status_code == 422
    assert client.get("/notifications/preferences").status_code == 401
