"""Tests for EventRouter."""

import pytest

from inbox.client.events import EventRouter
from inbox.schemas.events import EventName, NewPostFrame, PostPayload


def _post(post_id="p1"):
    return NewPostFrame(data=PostPayload(id=post_id))


@pytest.mark.asyncio
async def test_fan_out_in_registration_order():
    router = EventRouter()
    calls = []

    async def first(frame):
        calls.append(("first", frame.data.id))

    def second(frame):
        calls.append(("second", frame.data.id))

    router.on(EventName.NEW_POST, first)
    router.on("new-post", second)
    router.on(EventName.NEW_POST, first)

    assert await router.dispatch(_post()) == 2
    assert calls == [("first", "p1"), ("second", "p1")]


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others():
    router = EventRouter()
    calls = []

    async def broken(frame):
        raise RuntimeError("boom")

    router.on(EventName.NEW_POST, broken)
    router.on(EventName.NEW_POST, lambda f: calls.append(f.data.id))

    await router.dispatch(_post())
    assert calls == ["p1"]


@pytest.mark.asyncio
async def test_subscribe_releases_on_error():
    router = EventRouter()
    handler = lambda f: None  # noqa: E731

    with pytest.raises(ValueError):
        with router.subscribe(EventName.NEW_POST, handler):
            assert router.handler_count(EventName.NEW_POST) == 1
            raise ValueError("early exit")

    assert router.handler_count(EventName.NEW_POST) == 0
    assert await router.dispatch(_post()) == 0


def test_off_unknown_is_noop():
    router = EventRouter()
    router.off(EventName.NEW_MESSAGE, lambda f: None)
    assert router.handler_count(EventName.NEW_MESSAGE) == 0


@pytest.mark.asyncio
async def test_handler_may_unsubscribe_itself():
    router = EventRouter()
    calls = []

    def once(frame):
        calls.append(frame.data.id)
        router.off(EventName.NEW_POST, once)

    router.on(EventName.NEW_POST, once)
    await router.dispatch(_post("p1"))
    await router.dispatch(_post("p2"))
    assert calls == ["p1"]
