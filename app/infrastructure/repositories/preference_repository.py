"""Persistence helpers for recipient notification preferences."""

from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.entities import DeliveryChannel, NotificationPreferences
from app.infrastructure.models import NotificationPreferenceModel
from app.utils import ensure_app_naive_datetime, now_in_app_timezone


class PreferenceRepository:
    """Store only the values a recipient changed; defaults fill in the rest."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, recipient_id: str) -> NotificationPreferences:
        preferences = NotificationPreferences.defaults(recipient_id)
        rows = self.session.scalars(
            select(NotificationPreferenceModel).where(
                NotificationPreferenceModel.recipient_id == recipient_id
            )
        )
        for row in rows:
            try:
                channel = DeliveryChannel(row.channel)
            except ValueError:
                continue
            preferences.channels.setdefault(channel, {})[row.category] = bool(row.enabled)
        return preferences

    def save(
        self,
        recipient_id: str,
        updates: Mapping[DeliveryChannel, Mapping[str, bool]],
    ) -> NotificationPreferences:
        """Upsert ``updates`` and return the merged preferences."""

        now = ensure_app_naive_datetime(now_in_app_timezone())
        existing = {
            (row.channel, row.category): row
            for row in self.session.scalars(
                select(NotificationPreferenceModel).where(
                    NotificationPreferenceModel.recipient_id == recipient_id
                )
            )
        }
        for channel, categories in updates.items():
            for category, enabled in categories.items():
                row = existing.get((channel.value, category))
                if row is None:
                    self.session.add(
                        NotificationPreferenceModel(
                            recipient_id=recipient_id,
                            channel=channel.value,
                            category=category,
                            enabled=enabled,
                            updated_at=now,
                        )
                    )
                else:
                    row.enabled = enabled
                    row.updated_at = now
        self.session.commit()
        return self.get(recipient_id)


__all__ = ["PreferenceRepository"]
