from inbox.models.message import Message
from inbox.models.notification import Notification
from inbox.models.user import User

__all__ = [
    "Message",
    "Notification",
    "User",
]
