"""
User profile summary.

Users are issued and owned by the auth service; this table only mirrors the
fields needed to render a conversation or notification sender.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Uuid

from inbox.db import Base
from inbox.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(64), nullable=False, unique=True)
    full_name = Column(String(128), nullable=True)
    profile_picture = Column(String(512), nullable=True)
