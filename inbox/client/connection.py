"""
Connection manager: owns the single push connection of an authenticated
session.

Lifecycle:
- ``connect(user_id)`` starts a background runner (idempotent) that opens the
  transport, emits ``register`` and pumps inbound frames to the event router.
- A dropped transport is reopened with exponential backoff and ``register`` is
  emitted again after every reconnect.
- A heartbeat ``ping`` goes out every ``heartbeat_interval_seconds``; after
  ``heartbeat_max_missed`` consecutive unanswered pings the transport is
  considered dead and reopened.
- ``disconnect()`` stops everything; it is a no-op when nothing is running.
"""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Protocol, Union

from pydantic import BaseModel
from websockets.asyncio.client import connect as ws_connect

from inbox.client.events import EventRouter
from inbox.config import Settings
from inbox.infra.logging_config import get_logger
from inbox.schemas.events import (
    Frame,
    FrameValidationError,
    HeartbeatPayload,
    PingFrame,
    PongFrame,
    RegisterFrame,
    RegisterPayload,
    encode_frame,
    parse_frame,
)

logger = get_logger("connection")


class Transport(Protocol):
    async def send(self, message: str) -> None: ...
    async def recv(self) -> Union[str, bytes]: ...
    async def close(self) -> None: ...


Connector = Callable[[str, Dict[str, str]], Awaitable[Transport]]
Sleep = Callable[[float], Awaitable[None]]


async def websocket_connector(url: str, headers: Dict[str, str]) -> Transport:
    # Transport-level pings are off; the manager runs its own heartbeat
    return await ws_connect(url, additional_headers=headers, ping_interval=None)


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class ConnectionHandle:
    """What callers hold onto: the registered user and a way to emit frames."""

    def __init__(self, manager: "ConnectionManager", user_id: str) -> None:
        self._manager = manager
        self.user_id = user_id

    @property
    def connected(self) -> bool:
        return self._manager.state == ConnectionState.CONNECTED

    async def emit(self, frame: BaseModel) -> bool:
        return await self._manager.emit(frame)


class ConnectionManager:
    def __init__(
        self,
        settings: Settings,
        router: EventRouter,
        token: str,
        connector: Connector = websocket_connector,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._router = router
        self._token = token
        self._connector = connector
        self._sleep = sleep
        self._handle: Optional[ConnectionHandle] = None
        self._transport: Optional[Transport] = None
        self._runner: Optional[asyncio.Task] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._inbox: "asyncio.Queue[Frame]" = asyncio.Queue()
        self._connected = asyncio.Event()
        self._missed_pongs = 0
        self._ping_seq = 0
        self.state = ConnectionState.IDLE
        self.reconnect_count = 0

    @property
    def handle(self) -> Optional[ConnectionHandle]:
        return self._handle

    def connect(self, user_id: str) -> ConnectionHandle:
        """Start the connection for ``user_id``; returns the existing handle if any."""
        if self._handle is not None:
            if self._handle.user_id != user_id:
                raise ValueError(
                    f"Connection already open for user {self._handle.user_id}"
                )
            return self._handle
        self._handle = ConnectionHandle(self, user_id)
        self.state = ConnectionState.CONNECTING
        self._inbox = asyncio.Queue()
        self._dispatcher = asyncio.create_task(self._dispatch_loop())
        self._runner = asyncio.create_task(self._run(user_id))
        return self._handle

    async def wait_connected(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._connected.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def disconnect(self) -> None:
        if self._handle is None:
            return
        self.state = ConnectionState.CLOSED
        for task in (self._runner, self._dispatcher):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        await self._close_transport()
        self._runner = None
        self._dispatcher = None
        self._handle = None
        self._connected.clear()
        logger.info("Push connection closed")

    async def emit(self, frame: BaseModel) -> bool:
        transport = self._transport
        if transport is None or self.state != ConnectionState.CONNECTED:
            logger.warning("Push connection down; dropping %s frame", frame_event(frame))
            return False
        try:
            await transport.send(encode_frame(frame))
            return True
        except Exception as e:
            logger.warning("Failed to emit %s frame: %s", frame_event(frame), e)
            return False

    async def _run(self, user_id: str) -> None:
        initial = self._settings.reconnect_initial_delay_seconds
        delay = initial
        while self.state != ConnectionState.CLOSED:
            try:
                transport = await self._connector(self._settings.ws_url, self._headers())
            except Exception as e:
                logger.warning("Push connect failed: %s; retrying in %.2fs", e, delay)
                await self._sleep(delay)
                delay = self._next_delay(delay)
                continue

            self._transport = transport
            self._missed_pongs = 0
            delay = initial
            try:
                await transport.send(
                    encode_frame(RegisterFrame(data=RegisterPayload(user_id=user_id)))
                )
                self.state = ConnectionState.CONNECTED
                self._connected.set()
                logger.info("Push connection open for user %s", user_id)
                await self._pump(transport)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Push connection error: %s", e)
            finally:
                self._connected.clear()
                await self._close_transport()

            if self.state == ConnectionState.CLOSED:
                break
            self.state = ConnectionState.RECONNECTING
            self.reconnect_count += 1
            logger.warning("Push connection lost; reconnecting in %.2fs", delay)
            await self._sleep(delay)
            delay = self._next_delay(delay)

    def _next_delay(self, delay: float) -> float:
        return min(delay * 2, self._settings.reconnect_max_delay_seconds)

    async def _pump(self, transport: Transport) -> None:
        """Run receive and heartbeat loops until either ends."""
        receiver = asyncio.create_task(self._receive_loop(transport))
        heartbeat = asyncio.create_task(self._heartbeat_loop(transport))
        try:
            done, _ = await asyncio.wait(
                {receiver, heartbeat}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (receiver, heartbeat):
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()

    async def _receive_loop(self, transport: Transport) -> None:
        while True:
            raw = await transport.recv()
            try:
                frame = parse_frame(raw)
            except FrameValidationError as e:
                logger.warning("Dropping malformed frame: %s", e)
                continue
            if isinstance(frame, PongFrame):
                self._missed_pongs = 0
                continue
            if isinstance(frame, PingFrame):
                await transport.send(encode_frame(PongFrame(data=frame.data)))
                continue
            self._inbox.put_nowait(frame)

    async def _heartbeat_loop(self, transport: Transport) -> None:
        interval = self._settings.heartbeat_interval_seconds
        max_missed = self._settings.heartbeat_max_missed
        while True:
            await asyncio.sleep(interval)
            if self._missed_pongs >= max_missed:
                logger.warning(
                    "No pong for %d heartbeats; treating connection as dead",
                    self._missed_pongs,
                )
                return
            self._ping_seq += 1
            self._missed_pongs += 1
            await transport.send(
                encode_frame(PingFrame(data=HeartbeatPayload(seq=self._ping_seq)))
            )

    async def _dispatch_loop(self) -> None:
        # Frames are handled one at a time, in arrival order
        while True:
            frame = await self._inbox.get()
            try:
                await self._router.dispatch(frame)
            finally:
                self._inbox.task_done()

    async def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await transport.close()
        except Exception as e:
            logger.debug("Ignoring error while closing transport: %s", e)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}


def frame_event(frame: BaseModel) -> str:
    return str(getattr(frame, "event", type(frame).__name__))
