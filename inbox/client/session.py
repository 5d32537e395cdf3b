"""
Inbox session: wires the client pieces together for one logged-in user.

Create it after login and close it on logout. ``start()`` opens the push
connection, loads the initial conversation and notification snapshots and,
when ``reconcile_poll_interval_seconds`` is positive, starts the safety-net
poll. ``close()`` tears down in reverse order and is safe to call twice.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

from inbox.client.aggregator import UnreadAggregator
from inbox.client.api import InboxApiClient
from inbox.client.connection import Connector, ConnectionManager, websocket_connector
from inbox.client.conversation_store import ConversationStore
from inbox.client.events import EventRouter
from inbox.client.feed_store import FeedStore
from inbox.client.notification_store import NotificationStore
from inbox.client.reconciler import DeliveryReconciler
from inbox.config import Settings
from inbox.infra.logging_config import get_logger

logger = get_logger("client.session")


class InboxSession:
    def __init__(
        self,
        settings: Settings,
        user_id: str,
        token: str,
        api: Optional[InboxApiClient] = None,
        connector: Connector = websocket_connector,
    ) -> None:
        self.settings = settings
        self.user_id = user_id
        self.router = EventRouter()
        self.conversations = ConversationStore()
        self.notifications = NotificationStore()
        self.feed = FeedStore()
        self.aggregator = UnreadAggregator(
            self.conversations, self.notifications, settings.badge_ceiling
        )
        self._owns_api = api is None
        self.api = api or InboxApiClient(settings, token)
        self.connection = ConnectionManager(
            settings, self.router, token, connector=connector
        )
        self.reconciler = DeliveryReconciler(
            user_id,
            self.api,
            self.conversations,
            self.notifications,
            feed=self.feed,
            emitter=self.connection,
        )
        self._subscriptions: Optional[contextlib.ExitStack] = None
        self._poller: Optional[asyncio.Task] = None
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._subscriptions = self.reconciler.bind(self.router)
        self.connection.connect(self.user_id)
        await asyncio.gather(
            self.reconciler.refresh_conversations(),
            self.reconciler.refresh_notifications(),
        )
        if self.settings.reconcile_poll_interval_seconds > 0:
            self._poller = asyncio.create_task(self._poll_loop())
        logger.info("Inbox session started for user %s", self.user_id)

    async def close(self) -> None:
        if not self._started:
            return
        self._started = False
        if self._poller is not None:
            self._poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poller
            self._poller = None
        await self.connection.disconnect()
        if self._subscriptions is not None:
            self._subscriptions.close()
            self._subscriptions = None
        await self.reconciler.close()
        self.aggregator.close()
        if self._owns_api:
            await self.api.aclose()
        logger.info("Inbox session closed for user %s", self.user_id)

    async def __aenter__(self) -> "InboxSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _poll_loop(self) -> None:
        interval = self.settings.reconcile_poll_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.reconciler.reconcile()
            except Exception:
                logger.exception("Reconciliation poll failed")
