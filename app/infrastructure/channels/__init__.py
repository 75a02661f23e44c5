"""Channel adapter registry.

Real transports are used when their settings are present; otherwise the
channel falls back to :class:`LogOnlyChannelAdapter`.
"""

from __future__ import annotations

import logging

from app.config import Settings
from app.domain.entities import DeliveryChannel

from .base import ChannelAdapter, contact_address
from .email import SendGridEmailAdapter
from .gateway import HttpPushAdapter, HttpSmsAdapter, format_sms_message, push_icon_for
from .log_only import LogOnlyChannelAdapter

logger = logging.getLogger(__name__)


def build_channel_adapters(settings: Settings) -> dict[DeliveryChannel, ChannelAdapter]:
    """Return one adapter per transport channel according to ``settings``."""

    adapters: dict[DeliveryChannel, ChannelAdapter] = {}

    if settings.sendgrid_api_key and settings.sendgrid_sender:
        adapters[DeliveryChannel.EMAIL] = SendGridEmailAdapter()

    if settings.sms_gateway_url:
        adapters[DeliveryChannel.SMS] = HttpSmsAdapter(
            settings.sms_gateway_url,
            sender=settings.sms_sender,
            token=settings.sms_gateway_token,
            timeout=settings.channel_timeout_seconds,
        )

    if settings.push_gateway_url:
        adapters[DeliveryChannel.PUSH] = HttpPushAdapter(
            settings.push_gateway_url,
            token=settings.push_gateway_token,
            timeout=settings.channel_timeout_seconds,
        )

    for channel in DeliveryChannel:
        if channel not in adapters:
            logger.warning("%s transport not configured; deliveries will only be logged", channel.value)
            adapters[channel] = LogOnlyChannelAdapter(channel)

    return adapters


async def close_channel_adapters(adapters: dict[DeliveryChannel, ChannelAdapter]) -> None:
    for adapter in adapters.values():
        aclose = getattr(adapter, "aclose", None)
        if aclose is not None:
            await aclose()


__all__ = [
    "ChannelAdapter",
    "HttpPushAdapter",
    "HttpSmsAdapter",
    "LogOnlyChannelAdapter",
    "SendGridEmailAdapter",
    "build_channel_adapters",
    "close_channel_adapters",
    "contact_address",
    "format_sms_message",
    "push_icon_for",
]
