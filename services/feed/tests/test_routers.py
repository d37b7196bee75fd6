"""Tests for the feed and contents HTTP endpoints."""
import pytest
from fastapi.testclient import TestClient

from fakes import row
from fiyofeed.engine.types import ContentType
from fiyofeed.main import app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def fake_app_state(orchestrator, content_store):
    """Wire in-memory stores onto app.state instead of running the lifespan."""
    content_store.add("post", *[row(f"p{i}", "someone", hours_ago=i + 1) for i in range(8)])
    app.state.orchestrator = orchestrator
    app.state.content_store = content_store
    yield
    del app.state.orchestrator
    del app.state.content_store


@pytest.fixture
def client():
    return TestClient(app)


POST_IDS = [f"p{i}" for i in range(8)]


# ---------------------------------------------------------------------------
# /feed
# ---------------------------------------------------------------------------

class TestFeedEndpoints:
    def test_get_feed_returns_ids(self, client):
        response = client.get("/feed/u1", params={"content_type": "post"})
        assert response.status_code == 200
        assert response.json() == {
            "user_id": "u1",
            "content_type": "post",
            "content_ids": POST_IDS,
        }

    def test_content_type_defaults_to_post(self, client):
        assert client.get("/feed/u1").json()["content_type"] == "post"

    def test_invalid_content_type_is_400(self, client, cache):
        response = client.get("/feed/u1", params={"content_type": "video"})
        assert response.status_code == 400
        assert "video" in response.json()["detail"]
        assert cache.calls == []

    def test_store_failure_is_503(self, client, cache):
        cache.fail_on.add("get")
        response = client.get("/feed/u1")
        assert response.status_code == 503

    def test_contents_are_hydrated_in_feed_order(self, client):
        response = client.get("/feed/u1/contents")
        assert response.status_code == 200
        body = response.json()
        assert [c["id"] for c in body["contents"]] == POST_IDS
        assert body["contents"][0]["user_id"] == "someone"

    def test_precompute_returns_fresh_ids(self, client, cache):
        response = client.post("/feed/u1/precompute", params={"content_type": "posts"})
        assert response.status_code == 200
        assert response.json()["content_ids"] == POST_IDS
        assert "feed:u1:posts:timestamp" in cache.data


# ---------------------------------------------------------------------------
# /contents
# ---------------------------------------------------------------------------

class TestContentEndpoints:
    def test_get_content(self, client):
        response = client.get("/contents/post/p3")
        assert response.status_code == 200
        assert response.json()["id"] == "p3"

    def test_get_missing_content_is_404(self, client):
        assert client.get("/contents/clip/nope").status_code == 404

    def test_unknown_content_type_is_400(self, client):
        assert client.get("/contents/video/p1").status_code == 400

    def test_list_user_contents(self, client):
        response = client.get("/contents/post/users/someone")
        assert response.status_code == 200
        assert len(response.json()) == 8

    def test_create_content(self, client, content_store):
        response = client.post(
            "/contents/clip",
            json={"user_id": "u9", "caption": "hello", "hashtags": ["music"]},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["user_id"] == "u9"
        assert body["hashtags"] == ["music"]
        assert body["likes_count"] == 0
        assert content_store.rows[ContentType.CLIP][-1].id == body["id"]

    def test_update_passes_only_supplied_fields(self, client, content_store):
        response = client.patch(
            "/contents/post/p1", json={"user_id": "someone", "caption": "edited"}
        )
        assert response.status_code == 204
        (call,) = content_store.called("update_content")
        assert call[-1] == {"caption": "edited"}

    def test_update_without_fields_is_400(self, client):
        response = client.patch("/contents/post/p1", json={"user_id": "someone"})
        assert response.status_code == 400

    def test_update_by_another_user_is_404(self, client):
        response = client.patch(
            "/contents/post/p1", json={"user_id": "intruder", "caption": "x"}
        )
        assert response.status_code == 404

    def test_delete_content(self, client, content_store):
        response = client.delete("/contents/post/p1", params={"user_id": "someone"})
        assert response.status_code == 204
        assert "p1" not in [r.id for r in content_store.rows[ContentType.POST]]

    def test_delete_requires_user_id(self, client):
        assert client.delete("/contents/post/p1").status_code == 422

    def test_store_failure_is_503(self, client, content_store):
        content_store.fail_on.add("get_content")
        assert client.get("/contents/post/p1").status_code == 503


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
