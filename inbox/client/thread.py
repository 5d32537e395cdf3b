"""
Thread buffer for the open conversation.

Confirmed messages (server ids) are kept oldest→newest and deduplicated by
id. Messages the user is still sending live in a separate pending list under
a local id; a pending entry is replaced by the server's object on
confirmation and never takes part in deduplication.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set, Tuple

from inbox.schemas.messaging import MessageRead


@dataclass(frozen=True)
class PendingEntry:
    content: str
    local_id: str = field(default_factory=lambda: f"local-{uuid.uuid4().hex}")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class ThreadBuffer:
    def __init__(self, counterpart_id: str) -> None:
        self.counterpart_id = counterpart_id
        self._messages: Tuple[MessageRead, ...] = ()
        self._ids: Set[str] = set()
        self._pending: Tuple[PendingEntry, ...] = ()
        self.loaded = False

    @property
    def messages(self) -> Tuple[MessageRead, ...]:
        return self._messages

    @property
    def pending(self) -> Tuple[PendingEntry, ...]:
        return self._pending

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def load(self, history: Iterable[MessageRead]) -> None:
        """
        Bulk load from the history fetch. Messages appended live while the
        fetch was in flight are kept if the history does not contain them.
        """
        merged: List[MessageRead] = []
        ids: Set[str] = set()
        for message in history:
            if message.id not in ids:
                ids.add(message.id)
                merged.append(message)
        for message in self._messages:
            if message.id not in ids:
                ids.add(message.id)
                merged.append(message)
        self._messages = tuple(merged)
        self._ids = ids
        self.loaded = True

    def append(self, message: MessageRead) -> bool:
        """Append if the id is new. Returns False for a duplicate."""
        if message.id in self._ids:
            return False
        self._ids.add(message.id)
        self._messages = self._messages + (message,)
        return True

    def add_pending(self, content: str) -> PendingEntry:
        entry = PendingEntry(content=content)
        self._pending = self._pending + (entry,)
        return entry

    def confirm(self, local_id: str, message: MessageRead) -> bool:
        """
        Replace a pending entry by the confirmed server message. If that id
        was already delivered (e.g. echoed by push) the pending entry is just
        dropped. Returns whether a new confirmed entry was appended.
        """
        self._drop_pending(local_id)
        return self.append(message)

    def fail(self, local_id: str) -> Optional[PendingEntry]:
        """Remove a pending entry whose send failed and return it."""
        return self._drop_pending(local_id)

    def _drop_pending(self, local_id: str) -> Optional[PendingEntry]:
        found = None
        kept = []
        for entry in self._pending:
            if entry.local_id == local_id and found is None:
                found = entry
            else:
                kept.append(entry)
        self._pending = tuple(kept)
        return found
