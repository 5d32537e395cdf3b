"""Notification raised for a user by another user's action."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from inbox.db import Base
from inbox.models.mixins import TimestampMixin


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sender_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False)  # NotificationType value
    post_id = Column(String(64), nullable=True)  # owned by the posts service
    is_read = Column(Boolean, nullable=False, default=False)

    sender = relationship("User", foreign_keys=[sender_id], lazy="joined")
