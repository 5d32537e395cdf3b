from inbox.services.message_service import MessageService
from inbox.services.notification_service import NotificationService

__all__ = [
    "MessageService",
    "NotificationService",
]
