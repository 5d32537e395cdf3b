"""
Delivery reconciler: merges REST snapshots with push events.

Per conversation the state is CLOSED or OPEN (focused). Opening runs three
steps strictly in order: fetch history, await the read receipt, refresh the
conversation snapshot. A snapshot fetched before the receipt lands would
still carry the old unread count.

Inbound messages are handled the same way whatever the focus: a focused
message is appended to the open thread (deduplicated by id) and a read
receipt goes out in the background; the conversation store is always
updated, falling back to a background snapshot refresh when the counterpart
is unknown. Handlers never await REST themselves, so a slow snapshot cannot
hold up delivery for other conversations.

Responses are applied against the focus *at resolution time*, so a user who
navigated away while a call was in flight never gets a stale result applied
to the conversation now on screen.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Awaitable, Optional, Protocol, Set

from pydantic import BaseModel

from inbox.client.api import ApiError, InboxApiClient
from inbox.client.conversation_store import ConversationStore
from inbox.client.errors import MessageSendError, NoOpenConversationError
from inbox.client.events import EventRouter
from inbox.client.feed_store import FeedStore
from inbox.client.notification_store import NotificationStore
from inbox.client.thread import ThreadBuffer
from inbox.schemas.events import (
    EventName,
    NewMessageFrame,
    NewNotificationFrame,
    NewPostFrame,
    SendMessageFrame,
)
from inbox.schemas.messaging import MessageRead

logger = logging.getLogger(__name__)

BACKGROUND_DRAIN_TIMEOUT = 5.0


class Emitter(Protocol):
    async def emit(self, frame: BaseModel) -> bool: ...


class ConversationPhase(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class DeliveryReconciler:
    def __init__(
        self,
        user_id: str,
        api: InboxApiClient,
        conversations: ConversationStore,
        notifications: NotificationStore,
        feed: Optional[FeedStore] = None,
        emitter: Optional[Emitter] = None,
    ) -> None:
        self.user_id = user_id
        self._api = api
        self._conversations = conversations
        self._notifications = notifications
        self._feed = feed
        self._emitter = emitter
        self._focus: Optional[str] = None
        self._thread: Optional[ThreadBuffer] = None
        self._background: Set[asyncio.Task] = set()
        self._snapshot_issued = 0
        self._snapshot_applied = 0
        self._notifications_issued = 0
        self._notifications_applied = 0

    # --- focus ---

    @property
    def focused_counterpart(self) -> Optional[str]:
        return self._focus

    @property
    def thread(self) -> Optional[ThreadBuffer]:
        return self._thread

    def phase(self, counterpart_id: str) -> ConversationPhase:
        if self._focus == counterpart_id:
            return ConversationPhase.OPEN
        return ConversationPhase.CLOSED

    async def open_conversation(self, counterpart_id: str) -> ThreadBuffer:
        """CLOSED→OPEN: history, then read receipt, then snapshot refresh."""
        if self._focus == counterpart_id and self._thread is not None:
            return self._thread
        thread = ThreadBuffer(counterpart_id)
        self._focus = counterpart_id
        self._thread = thread

        try:
            history = await self._api.get_messages(counterpart_id)
        except ApiError as e:
            logger.warning("Could not load history with %s: %s", counterpart_id, e)
            return thread
        if self._thread is not thread:
            logger.debug("Focus moved off %s while loading history", counterpart_id)
            return thread
        thread.load(history)

        try:
            await self._api.mark_thread_read(counterpart_id)
        except ApiError as e:
            logger.warning("Read receipt for %s failed: %s", counterpart_id, e)
        else:
            if self._focus == counterpart_id:
                self._conversations.mark_read(counterpart_id)

        await self.refresh_conversations()
        return thread

    def close_conversation(self) -> None:
        """OPEN→CLOSED. No network effect."""
        self._focus = None
        self._thread = None

    # --- push handlers ---

    def bind(self, router: EventRouter) -> contextlib.ExitStack:
        """Subscribe to the router; closing the returned stack unsubscribes."""
        stack = contextlib.ExitStack()
        stack.enter_context(router.subscribe(EventName.NEW_MESSAGE, self._on_new_message))
        stack.enter_context(
            router.subscribe(EventName.NEW_NOTIFICATION, self._on_new_notification)
        )
        stack.enter_context(router.subscribe(EventName.NEW_POST, self._on_new_post))
        return stack

    async def _on_new_message(self, frame: NewMessageFrame) -> None:
        await self.handle_incoming_message(frame.data)

    async def _on_new_notification(self, frame: NewNotificationFrame) -> None:
        self._spawn(self.refresh_notifications())

    async def _on_new_post(self, frame: NewPostFrame) -> None:
        if self._feed is not None:
            self._feed.add_incoming(frame.data)

    async def handle_incoming_message(self, message: MessageRead) -> None:
        if message.sender_id == self.user_id:
            await self._handle_own_echo(message)
            return

        is_focused = self._focus == message.sender_id
        if is_focused and self._thread is not None:
            if self._thread.append(message):
                self._spawn(self._send_read_receipt(message.sender_id))

        if not self._conversations.upsert_from_incoming(message, is_focused):
            self._spawn(self.refresh_conversations())

    async def _handle_own_echo(self, message: MessageRead) -> None:
        counterpart = message.receiver_id
        if counterpart is None:
            return
        if self._focus == counterpart and self._thread is not None:
            self._thread.append(message)
        if not self._conversations.apply_outgoing(message, counterpart):
            self._spawn(self.refresh_conversations())

    async def _send_read_receipt(self, counterpart_id: str) -> None:
        await self._api.mark_thread_read(counterpart_id)
        if self._focus == counterpart_id:
            self._conversations.mark_read(counterpart_id)

    # --- outbound ---

    async def send_message(self, content: str) -> MessageRead:
        """
        Send to the focused counterpart. The thread shows the message as
        confirmed only once the server has assigned its id.
        """
        counterpart = self._focus
        thread = self._thread
        if counterpart is None or thread is None:
            raise NoOpenConversationError("No conversation is open")
        content = content.strip()
        if not content:
            raise ValueError("Message content is empty")

        pending = thread.add_pending(content)
        try:
            message = await self._api.send_message(counterpart, content)
        except ApiError as e:
            thread.fail(pending.local_id)
            logger.warning("Sending to %s failed: %s", counterpart, e)
            raise MessageSendError(content, e) from e

        if message.receiver_id is None:
            message = message.model_copy(update={"receiver_id": counterpart})
        thread.confirm(pending.local_id, message)
        self._conversations.apply_outgoing(message, counterpart)

        if self._emitter is not None:
            await self._emitter.emit(SendMessageFrame(data=message))
        await self.refresh_conversations()
        return message

    # --- snapshots ---

    async def refresh_conversations(self, guard_version: bool = False) -> bool:
        """
        Replace the conversation list from REST. A response is dropped if a
        later-issued snapshot was already applied, or, with ``guard_version``,
        if a push update changed the store while the request was in flight.
        """
        self._snapshot_issued += 1
        seq = self._snapshot_issued
        version = self._conversations.version if guard_version else None
        try:
            snapshot = await self._api.get_conversations()
        except ApiError as e:
            logger.warning("Conversation refresh failed, keeping current list: %s", e)
            return False
        if seq < self._snapshot_applied:
            return False
        applied = self._conversations.replace_all(snapshot, if_version=version)
        if applied:
            self._snapshot_applied = seq
        return applied

    async def refresh_notifications(self, guard_version: bool = False) -> bool:
        self._notifications_issued += 1
        seq = self._notifications_issued
        version = self._notifications.version if guard_version else None
        try:
            snapshot = await self._api.get_notifications()
        except ApiError as e:
            logger.warning("Notification refresh failed, keeping current list: %s", e)
            return False
        if seq < self._notifications_applied:
            return False
        applied = self._notifications.replace_all(snapshot, if_version=version)
        if applied:
            self._notifications_applied = seq
        return applied

    async def reconcile(self) -> None:
        """Safety-net poll. Push updates that land meanwhile take precedence."""
        await asyncio.gather(
            self.refresh_conversations(guard_version=True),
            self.refresh_notifications(guard_version=True),
        )

    # --- notifications ---

    async def mark_notification_read(self, notification_id: str) -> bool:
        try:
            await self._api.mark_notification_read(notification_id)
        except ApiError as e:
            logger.warning("Marking notification %s read failed: %s", notification_id, e)
            return False
        return self._notifications.mark_read(notification_id)

    async def mark_all_notifications_read(self) -> int:
        try:
            await self._api.mark_all_notifications_read()
        except ApiError as e:
            logger.warning("Marking all notifications read failed: %s", e)
            return 0
        return self._notifications.mark_all_read()

    # --- background work ---

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task failed: %s", exc)

    async def drain(self) -> None:
        """Wait for in-flight background calls."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        self.close_conversation()
        pending = list(self._background)
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=BACKGROUND_DRAIN_TIMEOUT)
        for task in still_running:
            task.cancel()
