"""Tests for post fan-out and health endpoints."""

from tests.fixtures.user_fixtures import make_token


def test_health(anon_client):
    r = anon_client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert data["environment"] == "test"
    assert data["push_connections"] == 0


def test_publish_post_without_listeners(client):
    r = client.post("/api/events/posts", json={"_id": "p1", "content": "hello"})
    assert r.status_code == 202
    assert r.json() == {"data": {"delivered": 0}}


def test_publish_post_requires_id(client):
    r = client.post("/api/events/posts", json={"content": "no id"})
    assert r.status_code == 422


def test_publish_post_requires_token(anon_client):
    r = anon_client.post("/api/events/posts", json={"_id": "p1"})
    assert r.status_code == 401


def test_publish_post_reaches_every_session(client, setup_user, setup_other_user):
    """new-post goes to all connected users, post object passed through."""
    with client.websocket_connect(
        "/ws", headers={"Authorization": f"Bearer {make_token(setup_other_user.id)}"}
    ) as ws:
        ws.send_json({"event": "register", "data": {"userId": str(setup_other_user.id)}})
        ws.send_json({"event": "ping", "data": {"seq": 7}})
        assert ws.receive_json() == {"event": "pong", "data": {"seq": 7}}
        assert client.get("/health").json()["push_connections"] == 1

        r = client.post(
            "/api/events/posts",
            json={"_id": "p42", "content": "new post", "likes": []},
        )
        assert r.json() == {"data": {"delivered": 1}}
        frame = ws.receive_json()

    assert frame["event"] == "new-post"
    assert frame["data"]["id"] == "p42"
    assert frame["data"]["content"] == "new post"
    assert frame["data"]["likes"] == []
