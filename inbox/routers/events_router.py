"""
Event fan-out API: the posts service forwards created posts here and we push
them as ``new-post`` to every connected session.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from inbox.core.hub import DeliveryHub
from inbox.routers.utils.dependencies import get_current_user_id, get_hub
from inbox.schemas.events import NewPostFrame, PostPayload

logger = logging.getLogger(__name__)

events_router = APIRouter(prefix="/api/events", tags=["Events"])


@events_router.post("/posts", response_model=dict[str, Any], status_code=202)
async def publish_post(
    body: dict[str, Any] = Body(...),
    current_user_id: UUID = Depends(get_current_user_id),
    hub: DeliveryHub = Depends(get_hub),
) -> dict[str, Any]:
    """Broadcast a post object. Return {"data": {"delivered": n}}."""
    try:
        post = PostPayload.model_validate(body)
    except ValidationError:
        raise HTTPException(status_code=422, detail="Post must carry an id")
    delivered = await hub.broadcast(NewPostFrame(data=post))
    logger.info("Post %s from %s broadcast to %d sockets", post.id, current_user_id, delivered)
    return {"data": {"delivered": delivered}}
