"""
Push channel endpoint.

Clients authenticate with the same bearer token as the REST API (header, or
``token`` query parameter for browsers; the header wins when both are sent),
then send ``register`` so the hub can address them by user id.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from inbox.config import get_settings
from inbox.core.auth import InvalidTokenError, decode_user_id, extract_bearer
from inbox.core.hub import HubSession, to_thread_lookup
from inbox.db import DatabaseManager
from inbox.schemas.messaging import MessageRead
from inbox.services.message_service import MessageService
from inbox.utils.rate_limit import RelayRateLimiter

logger = logging.getLogger(__name__)

realtime_router = APIRouter(tags=["Realtime"])


def _message_lookup(db_manager: DatabaseManager):
    def _lookup(message_id: str) -> Optional[MessageRead]:
        try:
            key = UUID(message_id)
        except ValueError:
            return None
        with db_manager.db_session() as db:
            svc = MessageService(db)
            message = svc.get_message(key)
            return svc.to_read(message) if message is not None else None

    return to_thread_lookup(_lookup)


@realtime_router.websocket("/ws")
async def push_channel(websocket: WebSocket) -> None:
    token = extract_bearer(websocket.headers.get("Authorization")) or (
        websocket.query_params.get("token")
    )
    try:
        user_id = decode_user_id(token, get_settings())
    except InvalidTokenError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    state = websocket.app.state
    session = HubSession(
        hub=state.hub,
        socket=websocket,
        message_lookup=_message_lookup(state.db_manager),
        authenticated_user_id=str(user_id),
        rate_limiter=RelayRateLimiter(
            getattr(state, "redis", None),
            get_settings().inbox_rate_limit_per_user_per_minute,
        ),
    )
    try:
        while True:
            raw = await websocket.receive_text()
            await session.handle_text(raw)
    except WebSocketDisconnect:
        logger.info("Push channel for %s disconnected", user_id)
    finally:
        session.close()
