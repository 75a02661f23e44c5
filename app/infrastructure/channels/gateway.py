"""SMS and push channels delivered through HTTP gateways."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.domain.entities import (
    DeliveryChannel,
    Notification,
    NotificationType,
    RecipientContact,
)
from app.domain.exceptions import TransportError

from .base import contact_address

logger = logging.getLogger(__name__)

SMS_MAX_LENGTH = 160

_PUSH_ICONS: dict[NotificationType, str] = {
    NotificationType.BOOKING_REQUEST: "booking",
    NotificationType.BOOKING_CONFIRMED: "check",
    NotificationType.BOOKING_CANCELLED: "cancel",
    NotificationType.REVIEW_RECEIVED: "star",
    NotificationType.PAYMENT_RECEIVED: "payment",
    NotificationType.MESSAGE: "message",
}


def format_sms_message(notification: Notification) -> str:
    """Return the SMS body, truncated to a single 160 character segment."""

    message = f"{notification.title}\n\n{notification.message}"
    if len(message) > SMS_MAX_LENGTH:
        message = message[: SMS_MAX_LENGTH - 3] + "..."
    return message


def push_icon_for(notification_type: NotificationType) -> str:
    return _PUSH_ICONS.get(notification_type, "notification")


class _GatewayAdapter:
    channel: DeliveryChannel

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._headers = headers
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _post(self, payload: dict[str, Any]) -> None:
        try:
            response = await self._client.post(self._url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"{self.channel.value} gateway unreachable: {exc}") from exc
        if response.is_error:
            detail = response.text.strip() or response.reason_phrase
            raise TransportError(
                f"{self.channel.value} gateway responded with status "
                f"{response.status_code}: {detail}"
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HttpSmsAdapter(_GatewayAdapter):
    channel = DeliveryChannel.SMS

    def __init__(self, url: str, *, sender: str | None = None, **kwargs: Any) -> None:
        super().__init__(url, **kwargs)
        self._sender = sender

    async def send(self, notification: Notification, contact: RecipientContact) -> None:
        phone = contact_address(self.channel, contact)
        await self._post(
            {"to": phone, "from": self._sender, "body": format_sms_message(notification)}
        )
        logger.info("SMS sent to %s for notification %s", phone, notification.id)


class HttpPushAdapter(_GatewayAdapter):
    channel = DeliveryChannel.PUSH

    async def send(self, notification: Notification, contact: RecipientContact) -> None:
        tokens = contact_address(self.channel, contact)
        await self._post(
            {
                "tokens": list(tokens),
                "title": notification.title,
                "body": notification.message,
                "data": notification.data or {},
                "icon": push_icon_for(notification.type),
            }
        )
        logger.info(
            "Push notification %s sent to %d devices", notification.id, len(tokens)
        )


__all__ = [
    "HttpPushAdapter",
    "HttpSmsAdapter",
    "SMS_MAX_LENGTH",
    "format_sms_message",
    "push_icon_for",
]
