"""Create, list and mark-read notifications for a recipient."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from inbox.models.notification import Notification
from inbox.schemas.messaging import NotificationCreate


class NotificationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_notification(
        self, sender_id: UUID, data: NotificationCreate
    ) -> Notification:
        notification = Notification(
            recipient_id=UUID(data.recipient_id),
            sender_id=sender_id,
            type=data.type.value,
            post_id=data.post_id,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def get_notifications(
        self, recipient_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Notification]:
        """Newest first."""
        return (
            self.db.query(Notification)
            .filter(Notification.recipient_id == recipient_id)
            .order_by(Notification.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_notification_for(
        self, recipient_id: UUID, notification_id: UUID
    ) -> Optional[Notification]:
        return (
            self.db.query(Notification)
            .filter(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
            .first()
        )

    def mark_read(self, notification: Notification) -> Notification:
        if not notification.is_read:
            notification.is_read = True
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, recipient_id: UUID) -> int:
        updated = (
            self.db.query(Notification)
            .filter(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
            .update({Notification.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def unread_count(self, recipient_id: UUID) -> int:
        return (
            self.db.query(Notification)
            .filter(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
            .count()
        )
