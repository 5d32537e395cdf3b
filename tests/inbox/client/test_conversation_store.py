"""Tests for ConversationStore."""

from hypothesis import given, settings
from hypothesis import strategies as st

from inbox.client.conversation_store import ConversationStore
from tests.fixtures.client_fixtures import make_conversation, make_message


def _store(*conversations):
    store = ConversationStore()
    store.replace_all(conversations)
    return store


def _order(store):
    return [c.counterpart_id for c in store.conversations]


def test_replace_all_sorts_and_dedupes():
    store = _store(
        make_conversation("a", seconds=10),
        make_conversation("b", seconds=30),
        make_conversation("a", seconds=99),
        make_conversation("c", seconds=20),
    )
    assert _order(store) == ["b", "c", "a"]
    assert store.get("a").last_message_time == make_conversation("a", seconds=10).last_message_time
    assert len(store) == 3


def test_upsert_unknown_counterpart_returns_false():
    store = _store(make_conversation("a"))
    version = store.version
    assert store.upsert_from_incoming(make_message("zz"), is_focused=False) is False
    assert store.version == version


def test_upsert_unfocused_increments_and_moves_to_front():
    """Scenario A: message for a closed conversation."""
    store = _store(
        make_conversation("u1", unread=2, seconds=10),
        make_conversation("u2", unread=0, seconds=50),
    )
    assert store.upsert_from_incoming(make_message("u1", content="new", seconds=60), False)
    assert _order(store) == ["u1", "u2"]
    u1 = store.get("u1")
    assert u1.unread_count == 3
    assert u1.last_message == "new"
    assert store.total_unread() == 3


def test_upsert_same_id_counts_once():
    store = _store(make_conversation("u1", unread=0, seconds=10))
    message = make_message("u1", message_id="m1", seconds=20)
    assert store.upsert_from_incoming(message, is_focused=False)
    version = store.version

    assert store.upsert_from_incoming(message, is_focused=False) is True
    assert store.get("u1").unread_count == 1
    assert store.version == version


def test_upsert_remembers_a_bounded_window_of_ids(monkeypatch):
    monkeypatch.setattr("inbox.client.conversation_store.SEEN_IDS_PER_COUNTERPART", 2)
    store = _store(make_conversation("u1", unread=0, seconds=0))
    for i, message_id in enumerate(["m1", "m2", "m3"]):
        store.upsert_from_incoming(make_message("u1", message_id=message_id, seconds=i), False)

    # m1 fell out of the window, m3 is still remembered
    store.upsert_from_incoming(make_message("u1", message_id="m3", seconds=5), False)
    assert store.get("u1").unread_count == 3
    store.upsert_from_incoming(make_message("u1", message_id="m1", seconds=6), False)
    assert store.get("u1").unread_count == 4


def test_upsert_focused_does_not_increment():
    """Scenario C: message for the open conversation."""
    store = _store(make_conversation("u1", unread=0, seconds=10))
    store.upsert_from_incoming(make_message("u1", content="seen", seconds=20), True)
    assert store.get("u1").unread_count == 0
    assert store.get("u1").last_message == "seen"


def test_upsert_moves_to_front_among_equal_times():
    store = _store(
        make_conversation("a", seconds=10),
        make_conversation("b", seconds=10),
    )
    assert _order(store) == ["a", "b"]
    store.upsert_from_incoming(make_message("b", seconds=10), False)
    assert _order(store) == ["b", "a"]


def test_out_of_order_message_counts_but_keeps_latest_preview():
    store = _store(make_conversation("u1", unread=0, seconds=100, last="latest"))
    store.upsert_from_incoming(make_message("u1", content="late", seconds=5), False)
    u1 = store.get("u1")
    assert u1.unread_count == 1
    assert u1.last_message == "latest"
    assert u1.last_message_time == make_conversation("u1", seconds=100).last_message_time


def test_apply_outgoing_never_touches_unread():
    store = _store(
        make_conversation("u1", unread=4, seconds=10),
        make_conversation("u2", seconds=20),
    )
    message = make_message("me", receiver_id="u1", content="reply", seconds=30)
    assert store.apply_outgoing(message, "u1") is True
    assert _order(store) == ["u1", "u2"]
    assert store.get("u1").unread_count == 4
    assert store.get("u1").last_message == "reply"
    assert store.apply_outgoing(message, "nobody") is False


def test_mark_read_is_idempotent():
    """Scenario B: opening a conversation zeroes its count once."""
    store = _store(make_conversation("u1", unread=5), make_conversation("u2", unread=2))
    assert store.mark_read("u1") is True
    version = store.version
    assert store.mark_read("u1") is True
    assert store.version == version
    assert store.get("u1").unread_count == 0
    assert store.total_unread() == 2
    assert store.mark_read("ghost") is False


def test_replace_all_if_version_rejects_stale_snapshot():
    store = _store(make_conversation("u1", unread=0, seconds=10))
    observed = store.version
    store.upsert_from_incoming(make_message("u1", seconds=20), False)

    applied = store.replace_all([make_conversation("u1", unread=0, seconds=10)], if_version=observed)

    assert applied is False
    assert store.get("u1").unread_count == 1


def test_listeners_see_complete_state_and_can_unsubscribe():
    store = _store(make_conversation("u1", unread=1, seconds=10))
    seen = []
    unsubscribe = store.subscribe(lambda s: seen.append((s.version, s.total_unread())))

    store.upsert_from_incoming(make_message("u1", seconds=20), False)
    store.mark_read("u1")
    unsubscribe()
    store.upsert_from_incoming(make_message("u1", seconds=30), False)

    assert [total for _, total in seen] == [2, 0]
    unsubscribe()


def test_failing_listener_does_not_block_others():
    store = ConversationStore()
    calls = []

    def broken(_store):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda s: calls.append(len(s)))
    store.replace_all([make_conversation("u1")])
    assert calls == [1]


# Each step is (counterpart, focused, kind, seconds)
_steps = st.lists(
    st.tuples(
        st.sampled_from(["a", "b", "c", "d"]),
        st.booleans(),
        st.sampled_from(["incoming", "outgoing", "read"]),
        st.integers(min_value=0, max_value=50),
    ),
    max_size=40,
)


@settings(max_examples=100, deadline=None)
@given(steps=_steps, initial_unread=st.integers(min_value=-3, max_value=5))
def test_invariants_hold_under_any_sequence(steps, initial_unread):
    store = _store(
        *(make_conversation(cp, unread=initial_unread, seconds=i) for i, cp in enumerate("abc"))
    )
    for counterpart, focused, kind, seconds in steps:
        if kind == "incoming":
            store.upsert_from_incoming(make_message(counterpart, seconds=seconds), focused)
        elif kind == "outgoing":
            store.apply_outgoing(make_message("me", counterpart, seconds=seconds), counterpart)
        else:
            store.mark_read(counterpart)

        times = [c.last_message_time for c in store.conversations]
        assert times == sorted(times, reverse=True)
        assert all(c.unread_count >= 0 for c in store.conversations)
        ids = [c.counterpart_id for c in store.conversations]
        assert len(ids) == len(set(ids))
        assert store.total_unread() == sum(c.unread_count for c in store.conversations)
        # d is never known; upserts for it must not create an entry
        assert store.get("d") is None
