"""Tests for NotificationStore and FeedStore."""

from inbox.client.feed_store import FeedStore
from inbox.client.notification_store import NotificationStore
from inbox.schemas.events import PostPayload
from tests.fixtures.client_fixtures import make_notification


def test_replace_all_orders_newest_first_and_dedupes():
    store = NotificationStore()
    old = make_notification("n1", seconds=0)
    new = make_notification("n2", seconds=10)
    store.replace_all([old, new, make_notification("n1", seconds=99)])
    assert [n.id for n in store.notifications] == ["n2", "n1"]
    assert store.unread_count() == 2


def test_mark_read_single():
    store = NotificationStore()
    store.replace_all([make_notification("n1"), make_notification("n2")])
    assert store.mark_read("n1") is True
    assert store.get("n1").is_read is True
    assert store.unread_count() == 1
    version = store.version
    assert store.mark_read("n1") is True
    assert store.version == version
    assert store.mark_read("missing") is False


def test_mark_all_read():
    store = NotificationStore()
    store.replace_all(
        [make_notification("n1"), make_notification("n2", is_read=True), make_notification("n3")]
    )
    assert store.mark_all_read() == 2
    assert store.unread_count() == 0
    assert store.mark_all_read() == 0


def test_replace_all_if_version():
    store = NotificationStore()
    version = store.version
    store.replace_all([make_notification("n1")])
    assert store.replace_all([], if_version=version) is False
    assert len(store.notifications) == 1


def test_feed_add_incoming_dedupes_and_prepends():
    feed = FeedStore()
    seen = []
    feed.subscribe(lambda f: seen.append(len(f.posts)))
    assert feed.add_incoming(PostPayload(id="p1")) is True
    assert feed.add_incoming(PostPayload(id="p2")) is True
    assert feed.add_incoming(PostPayload(id="p1")) is False
    assert [p.id for p in feed.posts] == ["p2", "p1"]
    assert seen == [1, 2]


def test_feed_respects_limit():
    feed = FeedStore(limit=2)
    for i in range(4):
        feed.add_incoming(PostPayload(id=f"p{i}"))
    assert [p.id for p in feed.posts] == ["p3", "p2"]


def test_feed_pending_post_is_replaced_on_confirm():
    feed = FeedStore()
    pending = feed.add_pending("my post")
    assert feed.pending == (pending,)
    assert feed.posts == ()

    assert feed.confirm(pending.local_id, PostPayload(id="srv1")) is True
    assert feed.pending == ()
    assert [p.id for p in feed.posts] == ["srv1"]


def test_feed_confirm_after_push_echo():
    feed = FeedStore()
    pending = feed.add_pending("my post")
    feed.add_incoming(PostPayload(id="srv1"))
    assert feed.confirm(pending.local_id, PostPayload(id="srv1")) is False
    assert feed.pending == ()
    assert len(feed.posts) == 1


def test_feed_fail_returns_entry():
    feed = FeedStore()
    pending = feed.add_pending("draft")
    assert feed.fail(pending.local_id) is pending
    assert feed.fail(pending.local_id) is None
    assert feed.pending == ()
