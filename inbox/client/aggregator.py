"""Unread aggregator: read-only badge totals derived from the stores."""

from __future__ import annotations

import logging
from typing import Callable, List

from inbox.client.conversation_store import ConversationStore
from inbox.client.notification_store import NotificationStore

logger = logging.getLogger(__name__)

Listener = Callable[["UnreadAggregator"], None]


def format_badge(count: int, ceiling: int = 9) -> str:
    """Text for a badge: empty at zero, ``"9+"`` above the ceiling."""
    if count <= 0:
        return ""
    if count > ceiling:
        return f"{ceiling}+"
    return str(count)


class UnreadAggregator:
    """
    Recomputes both totals synchronously whenever either store changes.
    Listeners are told only when a total actually moved.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        notifications: NotificationStore,
        badge_ceiling: int = 9,
    ) -> None:
        self._conversations = conversations
        self._notifications = notifications
        self._badge_ceiling = badge_ceiling
        self._listeners: List[Listener] = []
        self._total_messages = 0
        self._total_notifications = 0
        self._unsubscribers = [
            conversations.subscribe(lambda _store: self._recompute()),
            notifications.subscribe(lambda _store: self._recompute()),
        ]
        self._recompute()

    @property
    def total_unread_messages(self) -> int:
        return self._total_messages

    @property
    def total_unread_notifications(self) -> int:
        return self._total_notifications

    @property
    def message_badge(self) -> str:
        return format_badge(self._total_messages, self._badge_ceiling)

    @property
    def notification_badge(self) -> str:
        return format_badge(self._total_notifications, self._badge_ceiling)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        """Detach from the stores."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def _recompute(self) -> None:
        messages = self._conversations.total_unread()
        notifications = self._notifications.unread_count()
        changed = (messages, notifications) != (
            self._total_messages,
            self._total_notifications,
        )
        self._total_messages = messages
        self._total_notifications = notifications
        if not changed:
            return
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Unread aggregator listener failed")
