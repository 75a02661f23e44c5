"""Connection management for realtime notification endpoints."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, DefaultDict, Protocol, Set

import anyio

logger = logging.getLogger(__name__)


class RealtimeEndpoint(Protocol):
    """Anything that can push JSON to one connected client (e.g. a websocket)."""

    async def send_json(self, data: Any) -> None:
        ...


class NotificationConnectionManager:
    """Route realtime events to the endpoints each recipient has joined with.

    The manager only keeps routing. Events for recipients without open
    endpoints are dropped; clients fetch persisted notifications on reconnect.
    All mutations happen on the event loop thread, so no locking is needed.
    """

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self._send_timeout = send_timeout
        self._connections: DefaultDict[str, Set[RealtimeEndpoint]] = defaultdict(set)

    def join_recipient(self, recipient_id: str, endpoint: RealtimeEndpoint) -> None:
        """Register ``endpoint`` as an open connection of ``recipient_id``."""

        self._connections[recipient_id].add(endpoint)
        logger.info(
            "Recipient %s joined realtime notifications (%d endpoints)",
            recipient_id,
            len(self._connections[recipient_id]),
        )

    def disconnect(self, recipient_id: str, endpoint: RealtimeEndpoint) -> None:
        """Remove ``endpoint`` from the pool for ``recipient_id``."""

        connections = self._connections.get(recipient_id)
        if connections is None:
            return
        connections.discard(endpoint)
        if not connections:
            self._connections.pop(recipient_id, None)

    def connection_count(self, recipient_id: str) -> int:
        return len(self._connections.get(recipient_id, ()))

    def is_connected(self, recipient_id: str) -> bool:
        return self.connection_count(recipient_id) > 0

    async def send_to_recipient(self, recipient_id: str, message: dict[str, Any]) -> int:
        """Send ``message`` to every open endpoint of ``recipient_id`` concurrently.

        Returns how many endpoints accepted it. Endpoints that fail or do not
        accept the message within ``send_timeout`` seconds are dropped.
        """

        connections = list(self._connections.get(recipient_id, set()))
        delivered = 0

        async def push(connection: RealtimeEndpoint) -> None:
            nonlocal delivered
            try:
                with anyio.fail_after(self._send_timeout):
                    await connection.send_json(message)
            except Exception as exc:
                logger.warning(
                    "Dropping stale realtime endpoint for recipient %s: %s",
                    recipient_id,
                    str(exc) or exc.__class__.__name__,
                )
                self.disconnect(recipient_id, connection)
            else:
                delivered += 1

        async with anyio.create_task_group() as group:
            for connection in connections:
                group.start_soon(push, connection)
        return delivered

    def clear(self) -> None:
        self._connections.clear()


__all__ = ["NotificationConnectionManager", "RealtimeEndpoint"]
