"""Send transactional notification emails via SendGrid."""

from __future__ import annotations

import json
import logging
from html import escape
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.config import get_settings
from app.domain.exceptions import TransportError

logger = logging.getLogger(__name__)


def _extract_sendgrid_error_details(body: Any) -> str | None:
    """Return a human readable description for a SendGrid error payload."""

    if body in (None, ""):
        return None

    if isinstance(body, bytes):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError:
            return None

    if isinstance(body, str):
        body = body.strip()
        if not body:
            return None
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            return body
    else:
        parsed = body

    if isinstance(parsed, dict):
        errors = parsed.get("errors")
        if isinstance(errors, list):
            messages = [
                str(item["message"])
                for item in errors
                if isinstance(item, dict) and item.get("message")
            ]
            if messages:
                return "; ".join(messages)
        try:
            return json.dumps(parsed)
        except (TypeError, ValueError):
            return None

    if isinstance(parsed, list):
        return "; ".join(str(item) for item in parsed)

    return None


def _describe_failure(source: Any) -> str:
    """Summarize a SendGrid exception or unsuccessful response."""

    status_code = getattr(source, "status_code", None)
    details = _extract_sendgrid_error_details(getattr(source, "body", None))

    if status_code and details:
        return f"SendGrid request failed with status {status_code}: {details}"
    if status_code:
        return f"SendGrid request failed with status {status_code}"
    if details:
        return f"SendGrid request failed: {details}"
    return f"SendGrid request failed: {source}"


def is_email_configured() -> bool:
    settings = get_settings()
    return bool(settings.sendgrid_api_key and settings.sendgrid_sender)


def send_email(subject: str, html_content: str, recipient: str) -> None:
    """Send an email using the configured SendGrid credentials.

    Raises :class:`TransportError` when SendGrid is not configured, rejects
    the request or cannot be reached.
    """

    settings = get_settings()
    if not (settings.sendgrid_api_key and settings.sendgrid_sender):
        raise TransportError("SendGrid configuration incomplete")

    message = Mail(
        from_email=settings.sendgrid_sender,
        to_emails=recipient,
        subject=subject,
        html_content=html_content,
    )

    try:
        client = SendGridAPIClient(settings.sendgrid_api_key)
        response = client.send(message)
    except Exception as exc:
        detail = _describe_failure(exc)
        logger.error(detail)
        raise TransportError(detail) from exc

    status_code = getattr(response, "status_code", None)
    if not isinstance(status_code, int) or not 200 <= status_code < 300:
        detail = _describe_failure(response)
        logger.error(detail)
        raise TransportError(detail)


def render_notification_html(title: str, message: str, recipient_name: str | None = None) -> str:
    """Return the minimal HTML body used for notification emails."""

    greeting = f"Hi {escape(recipient_name)}," if recipient_name else "Hi,"
    paragraphs = "".join(
        f"<p>{escape(line)}</p>" for line in message.splitlines() if line.strip()
    )
    return "".join(
        (
            f"<p>{greeting}</p>",
            f"<h2>{escape(title)}</h2>",
            paragraphs,
        )
    )


__all__ = ["is_email_configured", "render_notification_html", "send_email"]
