"""Tests for push frame parsing and encoding."""

import json

import pytest

from inbox.schemas.events import (
    FrameValidationError,
    NewMessageFrame,
    NewNotificationFrame,
    NewPostFrame,
    PingFrame,
    RegisterFrame,
    RegisterPayload,
    encode_frame,
    error_frame,
    parse_frame,
)


def test_parse_new_message_with_populated_sender():
    raw = {
        "event": "new-message",
        "data": {
            "_id": "m1",
            "senderId": {"_id": "u1", "username": "ana", "fullName": "Ana B"},
            "receiverId": "u2",
            "content": "hi",
            "createdAt": "2026-01-01T10:00:00",
        },
    }
    frame = parse_frame(json.dumps(raw))
    assert isinstance(frame, NewMessageFrame)
    assert frame.data.id == "m1"
    assert frame.data.sender_id == "u1"
    assert frame.data.sender.display_name == "Ana B"
    # Naive timestamps are taken as UTC
    assert frame.data.created_at.utcoffset().total_seconds() == 0


def test_parse_new_notification_without_payload():
    frame = parse_frame({"event": "new-notification", "data": {}})
    assert isinstance(frame, NewNotificationFrame)
    assert frame.data.id is None


def test_parse_new_post_keeps_extra_fields():
    frame = parse_frame(b'{"event": "new-post", "data": {"_id": "p1", "likes": [1]}}')
    assert isinstance(frame, NewPostFrame)
    assert frame.data.id == "p1"
    assert frame.data.model_extra == {"likes": [1]}


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        "[1, 2]",
        '{"event": "unknown", "data": {}}',
        '{"event": "new-message", "data": {"id": "m1"}}',
        '{"event": "new-post", "data": {"title": "no id"}}',
        '{"event": "ping", "data": {"seq": -1}}',
    ],
)
def test_parse_rejects_bad_frames(raw):
    with pytest.raises(FrameValidationError):
        parse_frame(raw)


def test_encode_uses_camel_case():
    frame = RegisterFrame(data=RegisterPayload(user_id="u1"))
    assert json.loads(encode_frame(frame)) == {
        "event": "register",
        "data": {"userId": "u1"},
    }


def test_encode_ping_and_error():
    assert json.loads(encode_frame(PingFrame(data={"seq": 3}))) == {
        "event": "ping",
        "data": {"seq": 3},
    }
    assert json.loads(encode_frame(error_frame("bad", "why"))) == {
        "event": "error",
        "data": {"code": "bad", "detail": "why"},
    }
