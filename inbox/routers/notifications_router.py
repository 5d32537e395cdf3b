"""Notifications API: list, mark read (single / all), create + push."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from inbox.core.hub import DeliveryHub
from inbox.db import get_db
from inbox.routers.utils.dependencies import get_current_user_id, get_hub
from inbox.schemas.events import NewNotificationFrame, NotificationSignal
from inbox.schemas.messaging import NotificationCreate, NotificationRead, ReadReceipt
from inbox.services.message_service import MessageService
from inbox.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

notifications_router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@notifications_router.get("", response_model=List[NotificationRead])
def list_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> List[NotificationRead]:
    """Notifications for the caller, newest first."""
    rows = NotificationService(db).get_notifications(
        current_user_id, skip=skip, limit=limit
    )
    return [NotificationRead.model_validate(n) for n in rows]


@notifications_router.put("/read-all", response_model=ReadReceipt)
def mark_all_read(
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ReadReceipt:
    return ReadReceipt(updated=NotificationService(db).mark_all_read(current_user_id))


@notifications_router.put("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> NotificationRead:
    svc = NotificationService(db)
    notification = svc.get_notification_for(current_user_id, notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return NotificationRead.model_validate(svc.mark_read(notification))


@notifications_router.post("", response_model=NotificationRead, status_code=201)
async def create_notification(
    body: NotificationCreate,
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    hub: DeliveryHub = Depends(get_hub),
) -> NotificationRead:
    """
    Record a like/comment/follow notification raised by the caller and push
    ``new-notification`` to the recipient's open sockets.
    """
    try:
        recipient_id = UUID(body.recipient_id)
    except ValueError:
        raise HTTPException(status_code=422, detail="recipientId is not a valid id")
    if recipient_id == current_user_id:
        raise HTTPException(status_code=400, detail="Cannot notify yourself")
    if MessageService(db).get_user(recipient_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    notification = NotificationService(db).create_notification(current_user_id, body)
    result = NotificationRead.model_validate(notification)
    delivered = await hub.publish_to_user(
        str(recipient_id), NewNotificationFrame(data=NotificationSignal(id=result.id))
    )
    logger.info(
        "Notification %s for %s pushed to %d sockets", result.id, recipient_id, delivered
    )
    return result
