"""SQLAlchemy models for persisted notifications and their channel state."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation for recipient notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_recipient_state", "recipient_id", "is_read", "is_archived"),
        Index("ix_notification_due", "scheduled_for", "dispatched_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    sender_id = Column(String(64), nullable=True)
    type = Column(String(40), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    priority = Column(String(10), nullable=False, default="normal")
    source = Column(String(10), nullable=False, default="system")
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime(), nullable=True)
    scheduled_for = Column(DateTime(), nullable=True)
    dispatched_at = Column(DateTime(), nullable=True)
    expires_at = Column(DateTime(), nullable=True, index=True)
    created_at = Column(
        DateTime(), nullable=False, default=now_in_app_naive_datetime, index=True
    )
    updated_at = Column(DateTime(), nullable=True)

    channels = relationship(
        "NotificationChannelModel",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class NotificationChannelModel(Base):
    """Delivery state of one transport channel of a notification.

    Each channel lives in its own row so status writes for different channels
    never touch the same row.
    """

    __tablename__ = "notification_channel"
    __table_args__ = (
        UniqueConstraint("notification_id", "channel", name="uq_notification_channel"),
    )

    id = Column(Integer, primary_key=True)
    notification_id = Column(
        Integer,
        ForeignKey("notification.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    channel = Column(String(10), nullable=False)
    sent = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime(), nullable=True)
    error = Column(String(500), nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_attempt_at = Column(DateTime(), nullable=True)

    notification = relationship("NotificationModel", back_populates="channels")


__all__ = ["NotificationChannelModel", "NotificationModel"]
