"""
Push channel frames.

Every frame on the socket is a JSON object ``{"event": <name>, "data": ...}``.
Frames are validated into tagged types at the connection boundary; anything
that does not match one of the shapes below is rejected with
``FrameValidationError``.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
)

from inbox.schemas.messaging import Identifier, MessageRead, WireModel


class EventName(str, Enum):
    REGISTER = "register"
    SEND_MESSAGE = "send-message"
    NEW_MESSAGE = "new-message"
    NEW_NOTIFICATION = "new-notification"
    NEW_POST = "new-post"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


class FrameValidationError(ValueError):
    """Raised when a raw frame is not valid JSON or not a known frame shape."""


class RegisterPayload(WireModel):
    user_id: Identifier


class NotificationSignal(WireModel):
    id: Optional[Identifier] = Field(
        default=None, validation_alias=AliasChoices("id", "_id")
    )


class PostPayload(BaseModel):
    """Opaque post object; only the id is interpreted."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: Identifier = Field(validation_alias=AliasChoices("id", "_id"))


class HeartbeatPayload(WireModel):
    seq: int = Field(ge=0)


class ErrorPayload(WireModel):
    code: str
    detail: Optional[str] = None


class RegisterFrame(BaseModel):
    event: Literal["register"] = "register"
    data: RegisterPayload


class SendMessageFrame(BaseModel):
    event: Literal["send-message"] = "send-message"
    data: MessageRead


class NewMessageFrame(BaseModel):
    event: Literal["new-message"] = "new-message"
    data: MessageRead


class NewNotificationFrame(BaseModel):
    event: Literal["new-notification"] = "new-notification"
    data: NotificationSignal = Field(default_factory=NotificationSignal)


class NewPostFrame(BaseModel):
    event: Literal["new-post"] = "new-post"
    data: PostPayload


class PingFrame(BaseModel):
    event: Literal["ping"] = "ping"
    data: HeartbeatPayload


class PongFrame(BaseModel):
    event: Literal["pong"] = "pong"
    data: HeartbeatPayload


class ErrorFrame(BaseModel):
    event: Literal["error"] = "error"
    data: ErrorPayload


Frame = Annotated[
    Union[
        RegisterFrame,
        SendMessageFrame,
        NewMessageFrame,
        NewNotificationFrame,
        NewPostFrame,
        PingFrame,
        PongFrame,
        ErrorFrame,
    ],
    Field(discriminator="event"),
]

_FRAME_ADAPTER: TypeAdapter[Frame] = TypeAdapter(Frame)


def parse_frame(raw: Union[str, bytes, dict[str, Any]]) -> Frame:
    """Decode and validate a raw frame. Raise FrameValidationError if invalid."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise FrameValidationError(f"Frame is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise FrameValidationError("Frame must be a JSON object")
    try:
        return _FRAME_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise FrameValidationError(str(e)) from e


def encode_frame(frame: BaseModel) -> str:
    return frame.model_dump_json(by_alias=True)


def error_frame(code: str, detail: Optional[str] = None) -> ErrorFrame:
    return ErrorFrame(data=ErrorPayload(code=code, detail=detail))
