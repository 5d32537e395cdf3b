"""Tests for ThreadBuffer."""

from inbox.client.thread import ThreadBuffer
from tests.fixtures.client_fixtures import make_message


def test_append_dedupes_by_id():
    thread = ThreadBuffer("u1")
    message = make_message("u1", message_id="m1")
    assert thread.append(message) is True
    assert thread.append(message) is False
    assert "m1" in thread
    assert len(thread.messages) == 1


def test_load_keeps_live_messages_missing_from_history():
    thread = ThreadBuffer("u1")
    live = make_message("u1", message_id="live", seconds=50)
    thread.append(live)

    history = [
        make_message("u1", message_id="h1", seconds=1),
        make_message("me", "u1", message_id="h2", seconds=2),
    ]
    thread.load(history)

    assert [m.id for m in thread.messages] == ["h1", "h2", "live"]
    assert thread.loaded is True


def test_load_drops_duplicates_already_in_history():
    thread = ThreadBuffer("u1")
    thread.append(make_message("u1", message_id="m2"))
    thread.load([make_message("u1", message_id="m1"), make_message("u1", message_id="m2")])
    assert [m.id for m in thread.messages] == ["m1", "m2"]


def test_pending_entry_is_replaced_by_confirmed_message():
    thread = ThreadBuffer("u1")
    pending = thread.add_pending("hello")
    assert pending.local_id.startswith("local-")
    assert thread.messages == ()
    assert pending.local_id not in thread

    confirmed = make_message("me", "u1", content="hello", message_id="srv")
    assert thread.confirm(pending.local_id, confirmed) is True
    assert thread.pending == ()
    assert thread.messages == (confirmed,)


def test_confirm_after_push_echo_drops_pending_only():
    thread = ThreadBuffer("u1")
    pending = thread.add_pending("hello")
    echoed = make_message("me", "u1", content="hello", message_id="srv")
    thread.append(echoed)
    assert thread.confirm(pending.local_id, echoed) is False
    assert thread.pending == ()
    assert len(thread.messages) == 1


def test_fail_removes_pending():
    thread = ThreadBuffer("u1")
    first = thread.add_pending("a")
    second = thread.add_pending("b")
    assert thread.fail(first.local_id) is first
    assert thread.pending == (second,)
    assert thread.fail("local-unknown") is None
