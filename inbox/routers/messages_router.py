"""Messages API: conversation list, thread history, send, read receipts."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from inbox.db import get_db
from inbox.models.user import User
from inbox.routers.utils.dependencies import get_current_user_id, get_user_by_id
from inbox.schemas.messaging import (
    ConversationSummary,
    MessageCreate,
    MessageRead,
    ReadReceipt,
)
from inbox.services.message_service import MessageService

messages_router = APIRouter(prefix="/api/messages", tags=["Messages"])


@messages_router.get("/conversations", response_model=List[ConversationSummary])
def list_conversations(
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> List[ConversationSummary]:
    """Conversation summaries for the caller, most recent first."""
    return MessageService(db).list_conversations(current_user_id)


@messages_router.get("/{user_id}", response_model=List[MessageRead])
def get_thread(
    counterpart: User = Depends(get_user_by_id),
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> List[MessageRead]:
    """Full message history with a counterpart, oldest first."""
    svc = MessageService(db)
    return [svc.to_read(m) for m in svc.get_thread(current_user_id, counterpart.id)]


@messages_router.post("", response_model=MessageRead, status_code=201)
def send_message(
    body: MessageCreate,
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> MessageRead:
    """Store a message. The sender's client relays it over the push channel."""
    svc = MessageService(db)
    try:
        receiver_id = UUID(body.receiver_id)
    except ValueError:
        raise HTTPException(status_code=422, detail="receiverId is not a valid id")
    if receiver_id == current_user_id:
        raise HTTPException(status_code=400, detail="Cannot message yourself")
    if svc.get_user(receiver_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    message = svc.create_message(current_user_id, receiver_id, body.content)
    return svc.to_read(message)


@messages_router.put("/read/{user_id}", response_model=ReadReceipt)
def mark_thread_read(
    counterpart: User = Depends(get_user_by_id),
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ReadReceipt:
    """Mark every message from the counterpart to the caller as read."""
    updated = MessageService(db).mark_thread_read(current_user_id, counterpart.id)
    return ReadReceipt(updated=updated)
