"""
Service for direct messages and the per-counterpart conversation list.

Messages are insert-only; the read flag is the only field ever updated.
"""

from __future__ import annotations

from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from inbox.models.message import Message
from inbox.models.user import User
from inbox.schemas.messaging import ConversationSummary, MessageRead, UserSummary


class MessageService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_user(self, user_id: UUID) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def create_message(self, sender_id: UUID, receiver_id: UUID, content: str) -> Message:
        message = Message(sender_id=sender_id, receiver_id=receiver_id, content=content)
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def get_message(self, message_id: UUID) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id).first()

    def get_thread(
        self, user_id: UUID, counterpart_id: UUID, limit: int = 500
    ) -> List[Message]:
        """Messages exchanged with a counterpart, oldest first."""
        latest = (
            self.db.query(Message)
            .filter(
                or_(
                    (Message.sender_id == user_id)
                    & (Message.receiver_id == counterpart_id),
                    (Message.sender_id == counterpart_id)
                    & (Message.receiver_id == user_id),
                )
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
            .all()
        )
        latest.reverse()
        return latest

    def mark_thread_read(self, user_id: UUID, counterpart_id: UUID) -> int:
        """Mark every unread message from counterpart to user as read."""
        updated = (
            self.db.query(Message)
            .filter(
                Message.sender_id == counterpart_id,
                Message.receiver_id == user_id,
                Message.is_read.is_(False),
            )
            .update({Message.is_read: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated

    def unread_counts(self, user_id: UUID) -> Dict[UUID, int]:
        rows = (
            self.db.query(Message.sender_id, func.count(Message.id))
            .filter(Message.receiver_id == user_id, Message.is_read.is_(False))
            .group_by(Message.sender_id)
            .all()
        )
        return {sender_id: count for sender_id, count in rows}

    def list_conversations(self, user_id: UUID) -> List[ConversationSummary]:
        """One summary per counterpart, most recent conversation first."""
        counterpart = case(
            (Message.sender_id == user_id, Message.receiver_id), else_=Message.sender_id
        )
        latest = (
            self.db.query(
                counterpart.label("counterpart_id"),
                func.max(Message.created_at).label("last_at"),
            )
            .filter(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .group_by(counterpart)
            .subquery()
        )
        rows = (
            self.db.query(Message, latest.c.counterpart_id)
            .join(
                latest,
                and_(
                    Message.created_at == latest.c.last_at,
                    or_(
                        and_(
                            Message.sender_id == user_id,
                            Message.receiver_id == latest.c.counterpart_id,
                        ),
                        and_(
                            Message.receiver_id == user_id,
                            Message.sender_id == latest.c.counterpart_id,
                        ),
                    ),
                ),
            )
            .order_by(Message.created_at.desc(), Message.id.desc())
            .all()
        )
        unread = self.unread_counts(user_id)
        latest_by_counterpart: Dict[UUID, Message] = {}
        # Equal timestamps can match more than one row; the first one wins
        for m, counterpart_id in rows:
            latest_by_counterpart.setdefault(counterpart_id, m)
        if not latest_by_counterpart:
            return []

        users = {
            u.id: u
            for u in self.db.query(User)
            .filter(User.id.in_(list(latest_by_counterpart)))
            .all()
        }
        summaries: List[ConversationSummary] = []
        for counterpart, last in latest_by_counterpart.items():
            user = users.get(counterpart)
            if user is None:
                continue
            summaries.append(
                ConversationSummary(
                    user=UserSummary.model_validate(user),
                    last_message=last.content,
                    last_message_time=last.created_at,
                    unread_count=unread.get(counterpart, 0),
                )
            )
        return summaries

    @staticmethod
    def to_read(message: Message) -> MessageRead:
        return MessageRead.model_validate(message)
