"""SQLAlchemy model for recipient notification preferences."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class NotificationPreferenceModel(Base):
    """One stored override: a category switched on or off for a channel."""

    __tablename__ = "notification_preference"
    __table_args__ = (
        UniqueConstraint(
            "recipient_id", "channel", "category", name="uq_notification_preference"
        ),
    )

    id = Column(Integer, primary_key=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    channel = Column(String(10), nullable=False)
    category = Column(String(40), nullable=False)
    enabled = Column(Boolean, nullable=False)
    updated_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)


__all__ = ["NotificationPreferenceModel"]
