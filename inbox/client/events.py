"""
Event router: demultiplexes validated push frames to registered handlers.

Several views may listen to the same event at once; each registered handler
receives every frame for its event, in registration order.
"""

from __future__ import annotations

import inspect
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Union

from inbox.schemas.events import EventName, Frame

logger = logging.getLogger(__name__)

Handler = Callable[[Frame], Union[Awaitable[None], None]]


def _event_key(event: Union[EventName, str]) -> str:
    return event.value if isinstance(event, EventName) else str(event)


class EventRouter:
    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    def on(self, event: Union[EventName, str], handler: Handler) -> None:
        handlers = self._handlers.setdefault(_event_key(event), [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: Union[EventName, str], handler: Handler) -> None:
        handlers = self._handlers.get(_event_key(event))
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[_event_key(event)]

    @contextmanager
    def subscribe(
        self, event: Union[EventName, str], handler: Handler
    ) -> Iterator[Handler]:
        """Register ``handler`` for the lifetime of the block."""
        self.on(event, handler)
        try:
            yield handler
        finally:
            self.off(event, handler)

    def handler_count(self, event: Union[EventName, str]) -> int:
        return len(self._handlers.get(_event_key(event), ()))

    async def dispatch(self, frame: Frame) -> int:
        """Deliver a frame to every handler of its event. Returns handlers run."""
        # Snapshot so handlers may unsubscribe while being called
        handlers = list(self._handlers.get(frame.event, ()))
        for handler in handlers:
            try:
                result: Any = handler(frame)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler %r failed for %s", handler, frame.event)
        return len(handlers)
