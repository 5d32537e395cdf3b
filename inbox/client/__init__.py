from inbox.client.aggregator import UnreadAggregator, format_badge
from inbox.client.api import InboxApiClient
from inbox.client.connection import ConnectionManager, ConnectionState
from inbox.client.conversation_store import ConversationStore
from inbox.client.events import EventRouter
from inbox.client.feed_store import FeedStore
from inbox.client.notification_store import NotificationStore
from inbox.client.reconciler import DeliveryReconciler
from inbox.client.session import InboxSession

__all__ = [
    "ConnectionManager",
    "ConnectionState",
    "ConversationStore",
    "DeliveryReconciler",
    "EventRouter",
    "FeedStore",
    "InboxApiClient",
    "InboxSession",
    "NotificationStore",
    "UnreadAggregator",
    "format_badge",
]
