"""
Messaging and notification shapes shared by the REST API, the push channel
and the realtime client.

JSON uses the camelCase names the web client has always used (``senderId``,
``lastMessageTime``, ``isRead`` ...). ``_id`` is accepted wherever ``id`` is.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Identifier = Annotated[str, BeforeValidator(lambda v: str(v) if v is not None else v)]
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class NotificationType(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    FOLLOW_REQUEST = "follow_request"


class UserSummary(WireModel):
    """Counterpart / sender profile summary."""

    model_config = ConfigDict(frozen=True)

    id: Identifier = Field(validation_alias=AliasChoices("id", "_id"))
    username: str
    full_name: Optional[str] = None
    profile_picture: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.username


class MessageRead(WireModel):
    """A stored message as returned by the API and pushed as ``new-message``."""

    model_config = ConfigDict(frozen=True)

    id: Identifier = Field(validation_alias=AliasChoices("id", "_id"))
    sender_id: Identifier
    receiver_id: Optional[Identifier] = None
    content: str
    created_at: UtcDatetime
    is_read: bool = False
    sender: Optional[UserSummary] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_populated_sender(cls, data: Any) -> Any:
        # The web client receives senderId as a populated user object
        if not isinstance(data, dict):
            return data
        raw = data.get("senderId", data.get("sender_id"))
        if isinstance(raw, dict):
            data = dict(data)
            data.pop("sender_id", None)
            data["senderId"] = raw.get("_id", raw.get("id"))
            data.setdefault("sender", raw)
        return data


class MessageCreate(WireModel):
    receiver_id: Identifier
    content: str = Field(min_length=1, max_length=5000)

    @field_validator("content")
    @classmethod
    def _strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("content must not be blank")
        return value


class ConversationSummary(WireModel):
    """One row of the conversation list, keyed by the counterpart user."""

    model_config = ConfigDict(frozen=True)

    user: UserSummary
    last_message: str = ""
    last_message_time: UtcDatetime
    unread_count: int = 0

    @field_validator("unread_count", mode="before")
    @classmethod
    def _clamp_unread(cls, value: Any) -> int:
        return max(0, int(value or 0))

    @property
    def counterpart_id(self) -> str:
        return self.user.id


class NotificationRead(WireModel):
    model_config = ConfigDict(frozen=True)

    id: Identifier = Field(validation_alias=AliasChoices("id", "_id"))
    type: NotificationType
    sender: Optional[UserSummary] = Field(
        default=None, validation_alias=AliasChoices("sender", "senderId")
    )
    post_id: Optional[str] = None
    is_read: bool = False
    created_at: UtcDatetime

    @field_validator("post_id", mode="before")
    @classmethod
    def _flatten_post(cls, value: Any) -> Any:
        # Populated post references carry their id under _id
        if isinstance(value, dict):
            return value.get("_id", value.get("id"))
        return value


class NotificationCreate(WireModel):
    recipient_id: Identifier
    type: NotificationType
    post_id: Optional[str] = None


class ReadReceipt(WireModel):
    """Result of a bulk read update."""

    updated: int
