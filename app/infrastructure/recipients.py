"""Resolve recipient identifiers into contact data."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from app.domain.entities import RecipientContact
from app.domain.exceptions import RecipientNotFound, TransportError

logger = logging.getLogger(__name__)


class RecipientResolver(Protocol):
    async def resolve(self, recipient_id: str) -> RecipientContact:
        ...


class HttpRecipientResolver:
    """Look recipients up in the identity service over HTTP.

    The identity service answers ``GET /api/users/{id}`` with the user either
    at the top level or wrapped as ``{"data": {"user": {...}}}``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def resolve(self, recipient_id: str) -> RecipientContact:
        try:
            response = await self._client.get(f"/api/users/{quote(recipient_id, safe='')}")
        except httpx.HTTPError as exc:
            logger.warning("Identity lookup for %s failed: %s", recipient_id, exc)
            raise TransportError(f"Identity lookup failed: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise RecipientNotFound(recipient_id)
        if response.is_error:
            raise TransportError(
                f"Identity lookup failed with status {response.status_code}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError("Identity service returned invalid JSON") from exc

        user = _extract_user(payload)
        if user is None:
            raise RecipientNotFound(recipient_id)
        return contact_from_payload(recipient_id, user)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class InMemoryRecipientDirectory:
    """Static directory used when no identity service is configured."""

    def __init__(self, contacts: Iterable[RecipientContact] = ()) -> None:
        self._contacts: dict[str, RecipientContact] = {
            contact.recipient_id: contact for contact in contacts
        }

    def register(self, contact: RecipientContact) -> None:
        self._contacts[contact.recipient_id] = contact

    async def resolve(self, recipient_id: str) -> RecipientContact:
        try:
            return self._contacts[recipient_id]
        except KeyError:
            raise RecipientNotFound(recipient_id) from None


def _extract_user(payload: Any) -> Mapping[str, Any] | None:
    if not isinstance(payload, Mapping):
        return None
    data = payload.get("data")
    if isinstance(data, Mapping):
        user = data.get("user")
        if isinstance(user, Mapping):
            return user
        return data
    user = payload.get("user")
    if isinstance(user, Mapping):
        return user
    return payload


def contact_from_payload(recipient_id: str, user: Mapping[str, Any]) -> RecipientContact:
    """Build a :class:`RecipientContact` from an identity service user payload."""

    tokens = user.get("deviceTokens") or user.get("device_tokens") or []
    if isinstance(tokens, str):
        tokens = [tokens]
    return RecipientContact(
        recipient_id=recipient_id,
        email=user.get("email") or None,
        phone=user.get("phone") or None,
        device_tokens=tuple(str(token) for token in tokens if token),
        name=user.get("name") or None,
    )


__all__ = [
    "HttpRecipientResolver",
    "InMemoryRecipientDirectory",
    "RecipientResolver",
    "contact_from_payload",
]
