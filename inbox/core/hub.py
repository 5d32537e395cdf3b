"""
Delivery hub: registry of live push sockets keyed by user id.

One hub per application instance. A user may hold several sockets (tabs);
frames addressed to a user are written to all of them. Sockets that fail on
write are dropped from the registry.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, Optional, Protocol, Set

from pydantic import BaseModel

from inbox.infra.logging_config import get_logger
from inbox.schemas.events import (
    EventName,
    Frame,
    FrameValidationError,
    NewMessageFrame,
    PingFrame,
    PongFrame,
    RegisterFrame,
    SendMessageFrame,
    encode_frame,
    error_frame,
    parse_frame,
)
from inbox.schemas.messaging import MessageRead

logger = get_logger("hub")

MessageLookup = Callable[[str], Awaitable[Optional[MessageRead]]]
RateLimiter = Callable[[str, str], Awaitable[bool]]


class PushSocket(Protocol):
    async def send_text(self, data: str) -> None: ...


class DeliveryHub:
    def __init__(self) -> None:
        self._connections: Dict[str, Set[PushSocket]] = {}

    def register(self, user_id: str, socket: PushSocket) -> None:
        self._connections.setdefault(user_id, set()).add(socket)
        logger.info(
            "User %s registered. Sockets for user: %d",
            user_id,
            len(self._connections[user_id]),
        )

    def unregister(self, user_id: str, socket: PushSocket) -> None:
        sockets = self._connections.get(user_id)
        if not sockets:
            return
        sockets.discard(socket)
        if not sockets:
            del self._connections[user_id]
        logger.info("User %s socket closed", user_id)

    def is_online(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    def connection_count(self, user_id: Optional[str] = None) -> int:
        if user_id is not None:
            return len(self._connections.get(user_id, ()))
        return sum(len(s) for s in self._connections.values())

    async def publish_to_user(self, user_id: str, frame: BaseModel) -> int:
        """Write a frame to every socket of a user. Returns sockets reached."""
        sockets = list(self._connections.get(user_id, ()))
        if not sockets:
            return 0
        payload = encode_frame(frame)
        delivered = 0
        for socket in sockets:
            if await self._send(socket, payload):
                delivered += 1
            else:
                self.unregister(user_id, socket)
        return delivered

    async def broadcast(self, frame: BaseModel) -> int:
        delivered = 0
        for user_id in list(self._connections):
            delivered += await self.publish_to_user(user_id, frame)
        return delivered

    @staticmethod
    async def _send(socket: PushSocket, payload: str) -> bool:
        try:
            await socket.send_text(payload)
            return True
        except Exception as e:
            logger.warning("Dropping socket after failed write: %s", e)
            return False


async def _allow_all(event: str, user_id: str) -> bool:
    return True


class HubSession:
    """
    Protocol state for one socket.

    The first non-heartbeat frame must be ``register``; when the socket was
    authenticated, the registered id must match the token subject.
    ``send-message`` is relayed as ``new-message`` only for a stored message
    sent by the registered user.
    """

    def __init__(
        self,
        hub: DeliveryHub,
        socket: PushSocket,
        message_lookup: MessageLookup,
        authenticated_user_id: Optional[str] = None,
        rate_limiter: RateLimiter = _allow_all,
    ) -> None:
        self.hub = hub
        self.socket = socket
        self.user_id: Optional[str] = None
        self._authenticated_user_id = authenticated_user_id
        self._message_lookup = message_lookup
        self._rate_limiter = rate_limiter

    async def handle_text(self, raw: str) -> None:
        try:
            frame = parse_frame(raw)
        except FrameValidationError as e:
            logger.warning("Rejected malformed frame from %s: %s", self.user_id, e)
            await self._reply_error("invalid_frame", "Frame failed validation")
            return
        await self.handle_frame(frame)

    async def handle_frame(self, frame: Frame) -> None:
        if isinstance(frame, PingFrame):
            await self._reply(PongFrame(data=frame.data))
        elif isinstance(frame, RegisterFrame):
            await self._register(frame.data.user_id)
        elif self.user_id is None:
            await self._reply_error("not_registered", "Send register first")
        elif isinstance(frame, SendMessageFrame):
            await self._relay(frame, self.user_id)
        else:
            logger.warning(
                "Ignoring %s frame from client %s", frame.event, self.user_id
            )
            await self._reply_error("unsupported_event", frame.event)

    def close(self) -> None:
        if self.user_id is not None:
            self.hub.unregister(self.user_id, self.socket)
            self.user_id = None

    async def _register(self, user_id: str) -> None:
        if self._authenticated_user_id and user_id != self._authenticated_user_id:
            logger.warning(
                "Register for %s refused on socket authenticated as %s",
                user_id,
                self._authenticated_user_id,
            )
            await self._reply_error("forbidden", "userId does not match token")
            return
        if self.user_id == user_id:
            return
        self.close()
        self.user_id = user_id
        self.hub.register(user_id, self.socket)

    async def _relay(self, frame: SendMessageFrame, user_id: str) -> None:
        if not await self._rate_limiter(EventName.SEND_MESSAGE.value, user_id):
            await self._reply_error("rate_limited", "Too many messages")
            return
        stored = await self._message_lookup(frame.data.id)
        if stored is None or stored.sender_id != user_id:
            logger.warning(
                "Refusing to relay message %s for user %s", frame.data.id, user_id
            )
            await self._reply_error("unknown_message", frame.data.id)
            return
        if stored.receiver_id is None:
            await self._reply_error("unknown_message", frame.data.id)
            return
        delivered = await self.hub.publish_to_user(
            stored.receiver_id, NewMessageFrame(data=stored)
        )
        logger.info(
            "Relayed message %s from %s to %s (%d sockets)",
            stored.id,
            user_id,
            stored.receiver_id,
            delivered,
        )

    async def _reply(self, frame: BaseModel) -> None:
        await self.socket.send_text(encode_frame(frame))

    async def _reply_error(self, code: str, detail: Optional[str] = None) -> None:
        await self._reply(error_frame(code, detail))


def to_thread_lookup(lookup: Callable[[str], Optional[MessageRead]]) -> MessageLookup:
    """Adapt a blocking lookup (SQLAlchemy) so it runs off the event loop."""

    async def _lookup(message_id: str) -> Optional[MessageRead]:
        return await asyncio.to_thread(lookup, message_id)

    return _lookup
