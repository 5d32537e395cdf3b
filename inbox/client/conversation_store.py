"""
Conversation store: the client's single source of truth for the
conversation list.

State is an immutable tuple of frozen ``ConversationSummary`` models, always
sorted by ``last_message_time`` descending. Every mutation builds a new tuple
and swaps it in at once, bumps ``version`` and then notifies listeners
synchronously, so observers never see a half-applied update.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from inbox.schemas.messaging import ConversationSummary, MessageRead

logger = logging.getLogger(__name__)

Listener = Callable[["ConversationStore"], None]

# Incoming ids remembered per counterpart to drop redelivered pushes
SEEN_IDS_PER_COUNTERPART = 200


def _sorted(conversations: Iterable[ConversationSummary]) -> Tuple[ConversationSummary, ...]:
    # Stable: among equal times the earlier position wins (front on upsert)
    return tuple(sorted(conversations, key=lambda c: c.last_message_time, reverse=True))


class ConversationStore:
    def __init__(self) -> None:
        self._conversations: Tuple[ConversationSummary, ...] = ()
        self._listeners: List[Listener] = []
        self._seen: Dict[str, "OrderedDict[str, None]"] = {}
        self.version = 0

    @property
    def conversations(self) -> Tuple[ConversationSummary, ...]:
        return self._conversations

    def get(self, counterpart_id: str) -> Optional[ConversationSummary]:
        for conversation in self._conversations:
            if conversation.counterpart_id == counterpart_id:
                return conversation
        return None

    def __len__(self) -> int:
        return len(self._conversations)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns the matching unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def replace_all(
        self,
        conversations: Iterable[ConversationSummary],
        if_version: Optional[int] = None,
    ) -> bool:
        """
        Replace the whole mapping with a snapshot.

        With ``if_version`` the snapshot is applied only if the store has not
        changed since that version was read. Returns whether it was applied.
        """
        if if_version is not None and if_version != self.version:
            logger.debug(
                "Discarding snapshot taken at v%d; store is at v%d",
                if_version,
                self.version,
            )
            return False
        seen: set[str] = set()
        unique: List[ConversationSummary] = []
        for conversation in conversations:
            if conversation.counterpart_id in seen:
                continue
            seen.add(conversation.counterpart_id)
            unique.append(conversation)
        self._commit(_sorted(unique))
        return True

    def upsert_from_incoming(self, message: MessageRead, is_focused: bool) -> bool:
        """
        Apply a message received from the counterpart ``message.sender_id``.

        Returns False when no conversation exists for that counterpart; the
        caller must then refresh from a snapshot. A message id already applied
        for the counterpart is ignored, so a redelivered push never counts twice.
        """
        current = self.get(message.sender_id)
        first_delivery = self._remember(message.sender_id, message.id)
        if current is None:
            return False
        if not first_delivery:
            logger.debug("Ignoring redelivered message %s", message.id)
            return True
        update: dict = {}
        if message.created_at >= current.last_message_time:
            update["last_message"] = message.content
            update["last_message_time"] = message.created_at
        if not is_focused:
            update["unread_count"] = current.unread_count + 1
        self._move_to_front(current.model_copy(update=update))
        return True

    def apply_outgoing(self, message: MessageRead, counterpart_id: str) -> bool:
        """Reflect the user's own sent message. Never touches the unread count."""
        current = self.get(counterpart_id)
        if current is None:
            return False
        if message.created_at < current.last_message_time:
            return True
        self._move_to_front(
            current.model_copy(
                update={
                    "last_message": message.content,
                    "last_message_time": message.created_at,
                }
            )
        )
        return True

    def mark_read(self, counterpart_id: str) -> bool:
        """Reset the unread count to zero. Idempotent."""
        current = self.get(counterpart_id)
        if current is None:
            return False
        if current.unread_count == 0:
            return True
        updated = current.model_copy(update={"unread_count": 0})
        self._commit(
            tuple(
                updated if c.counterpart_id == counterpart_id else c
                for c in self._conversations
            )
        )
        return True

    def total_unread(self) -> int:
        return sum(max(0, c.unread_count) for c in self._conversations)

    def _remember(self, counterpart_id: str, message_id: str) -> bool:
        seen = self._seen.setdefault(counterpart_id, OrderedDict())
        if message_id in seen:
            return False
        seen[message_id] = None
        if len(seen) > SEEN_IDS_PER_COUNTERPART:
            seen.popitem(last=False)
        return True

    def _move_to_front(self, updated: ConversationSummary) -> None:
        others = [
            c for c in self._conversations if c.counterpart_id != updated.counterpart_id
        ]
        self._commit(_sorted([updated, *others]))

    def _commit(self, conversations: Tuple[ConversationSummary, ...]) -> None:
        self._conversations = conversations
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Conversation store listener failed")
