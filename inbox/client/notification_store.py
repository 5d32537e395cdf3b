"""Notification store: newest-first list of notifications, swapped atomically."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Tuple

from inbox.schemas.messaging import NotificationRead

logger = logging.getLogger(__name__)

Listener = Callable[["NotificationStore"], None]


class NotificationStore:
    def __init__(self) -> None:
        self._notifications: Tuple[NotificationRead, ...] = ()
        self._listeners: List[Listener] = []
        self.version = 0

    @property
    def notifications(self) -> Tuple[NotificationRead, ...]:
        return self._notifications

    def get(self, notification_id: str) -> Optional[NotificationRead]:
        for n in self._notifications:
            if n.id == notification_id:
                return n
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def replace_all(
        self,
        notifications: Iterable[NotificationRead],
        if_version: Optional[int] = None,
    ) -> bool:
        if if_version is not None and if_version != self.version:
            return False
        unique = {}
        for n in notifications:
            unique.setdefault(n.id, n)
        ordered = sorted(unique.values(), key=lambda n: n.created_at, reverse=True)
        self._commit(tuple(ordered))
        return True

    def mark_read(self, notification_id: str) -> bool:
        current = self.get(notification_id)
        if current is None:
            return False
        if current.is_read:
            return True
        self._commit(
            tuple(
                n.model_copy(update={"is_read": True}) if n.id == notification_id else n
                for n in self._notifications
            )
        )
        return True

    def mark_all_read(self) -> int:
        unread = [n for n in self._notifications if not n.is_read]
        if not unread:
            return 0
        self._commit(
            tuple(
                n if n.is_read else n.model_copy(update={"is_read": True})
                for n in self._notifications
            )
        )
        return len(unread)

    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.is_read)

    def _commit(self, notifications: Tuple[NotificationRead, ...]) -> None:
        self._notifications = notifications
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Notification store listener failed")
