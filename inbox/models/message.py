"""
Direct message between two users.

Messages are append-only; the only mutable field is ``is_read``, flipped by
the receiver's read receipt.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import relationship

from inbox.db import Base
from inbox.models.mixins import TimestampMixin


class Message(Base, TimestampMixin):
    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_sender_receiver_created", "sender_id", "receiver_id", "created_at"),
        Index("ix_messages_receiver_unread", "receiver_id", "is_read"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sender_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)

    sender = relationship("User", foreign_keys=[sender_id], lazy="joined")
    receiver = relationship("User", foreign_keys=[receiver_id])
