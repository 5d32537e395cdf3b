"""
Feed store: sink for ``new-post`` push events and locally created posts.

Posts are kept newest first and deduplicated by id. A post the user is
creating is held as a pending entry until the posts service returns the
stored object, which then replaces the pending entry as-is.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from inbox.client.thread import PendingEntry
from inbox.schemas.events import PostPayload

logger = logging.getLogger(__name__)

Listener = Callable[["FeedStore"], None]


class FeedStore:
    def __init__(self, limit: int = 200) -> None:
        self._posts: Tuple[PostPayload, ...] = ()
        self._pending: Tuple[PendingEntry, ...] = ()
        self._listeners: List[Listener] = []
        self._limit = limit

    @property
    def posts(self) -> Tuple[PostPayload, ...]:
        return self._posts

    @property
    def pending(self) -> Tuple[PendingEntry, ...]:
        return self._pending

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def add_incoming(self, post: PostPayload) -> bool:
        """Prepend a pushed post unless it is already in the feed."""
        if any(p.id == post.id for p in self._posts):
            return False
        self._commit(((post,) + self._posts)[: self._limit])
        return True

    def add_pending(self, content: str) -> PendingEntry:
        entry = PendingEntry(content=content)
        self._pending = (entry,) + self._pending
        self._notify()
        return entry

    def confirm(self, local_id: str, post: PostPayload) -> bool:
        self._pending = tuple(e for e in self._pending if e.local_id != local_id)
        if not self.add_incoming(post):
            self._notify()
            return False
        return True

    def fail(self, local_id: str) -> Optional[PendingEntry]:
        entry = next((e for e in self._pending if e.local_id == local_id), None)
        if entry is not None:
            self._pending = tuple(e for e in self._pending if e.local_id != local_id)
            self._notify()
        return entry

    def _commit(self, posts: Tuple[PostPayload, ...]) -> None:
        self._posts = posts
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Feed store listener failed")
