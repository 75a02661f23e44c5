"""Shared fixtures: an isolated in-memory database and recording transports."""

from __future__ import annotations

import pytest

from app.application.use_cases.notifications import NotificationDispatcher, SchedulerGate
from app.domain.entities import DeliveryChannel
from app.infrastructure.database import Base, build_engine, build_session_factory, initialize_database
from app.infrastructure.notifications import NotificationConnectionManager, NotificationPublisher
from app.infrastructure.recipients import InMemoryRecipientDirectory

from fakes import RecordingChannelAdapter, contact


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    initialize_database(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def directory():
    return InMemoryRecipientDirectory(
        [
            contact("alice"),
            contact("bob"),
            contact("carol"),
            contact("dave", phone=None, device_tokens=()),
        ]
    )


@pytest.fixture
def adapters():
    return {channel: RecordingChannelAdapter(channel) for channel in DeliveryChannel}


@pytest.fixture
def connections():
    return NotificationConnectionManager()


@pytest.fixture
def publisher(connections):
    return NotificationPublisher(connections)


@pytest.fixture
def dispatcher(adapters, directory, session_factory, publisher):
    return NotificationDispatcher(
        adapters,
        directory,
        session_factory,
        publisher=publisher,
        attempt_timeout=2,
    )


@pytest.fixture
def scheduler(dispatcher):
    return SchedulerGate(dispatcher)
