from __future__ import annotations


class DeliveryError(Exception):
    """Base error raised by the delivery reconciler."""


class NoOpenConversationError(DeliveryError):
    """Raised when an operation needs a focused conversation and none is open."""


class MessageSendError(DeliveryError):
    """
    Raised when sending fails. ``content`` is the text the user typed so the
    compose input can be restored for a manual retry.
    """

    def __init__(self, content: str, cause: Exception) -> None:
        super().__init__(f"Message could not be sent: {cause}")
        self.content = content
        self.cause = cause
