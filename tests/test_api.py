"""Tests for the HTTP API: session gate, post endpoints, Medium mirror."""

import json
from typing import Optional

from fastapi.testclient import TestClient
from itsdangerous import URLSafeTimedSerializer

from portfolio.routes.auth import SESSION_COOKIE_NAME
from portfolio.services.medium import MediumPost
from tests.conftest import ADMIN_PASSWORD, ADMIN_USERNAME


def _create(client: TestClient, **fields) -> dict:
    response = client.post("/api/blog/posts", json=fields)
    assert response.status_code == 201, response.text
    return response.json()["post"]


# ── Session gate ────────────────────────────────────────────────────────

class TestLogin:
    def test_session_requires_cookie(self, client: TestClient):
        response = client.get("/api/blog/session")
        assert response.status_code == 401
        assert response.json() == {"authenticated": False}

    def test_login_sets_session(self, client: TestClient):
        response = client.post(
            "/api/blog/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        )
        assert response.status_code == 200
        assert SESSION_COOKIE_NAME in response.cookies

        session = client.get("/api/blog/session")
        assert session.status_code == 200
        assert session.json() == {"authenticated": True}

    def test_wrong_password(self, client: TestClient):
        response = client.post(
            "/api/blog/login",
            json={"username": ADMIN_USERNAME, "password": "nope"},
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials."}

    def test_wrong_username(self, client: TestClient):
        response = client.post(
            "/api/blog/login",
            json={"username": "root", "password": ADMIN_PASSWORD},
        )
        assert response.status_code == 401

    def test_unconfigured_credentials(self, client: TestClient):
        client.app.state.settings.admin_password = None
        response = client.post(
            "/api/blog/login",
            json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Admin credentials are not configured."}

    def test_forged_cookie_rejected(self, client: TestClient):
        forged = URLSafeTimedSerializer("other-secret", salt="blog-admin").dumps(
            {"authenticated": True}
        )
        client.cookies.set(SESSION_COOKIE_NAME, forged)
        assert client.get("/api/blog/session").status_code == 401

    def test_plain_flag_cookie_rejected(self, client: TestClient):
        client.cookies.set(SESSION_COOKIE_NAME, "true")
        assert client.get("/api/blog/session").status_code == 401

    def test_logout(self, admin_client: TestClient):
        admin_client.post("/api/blog/logout")
        assert admin_client.get("/api/blog/session").status_code == 401

    def test_login_rate_limited(self, client: TestClient):
        statuses = [
            client.post("/api/blog/login", json={"username": "x", "password": "y"}).status_code
            for _ in range(6)
        ]
        assert statuses[:5] == [401] * 5
        assert statuses[5] == 429


# ── Post endpoints ──────────────────────────────────────────────────────

class TestPostWrites:
    def test_writes_require_admin(self, client: TestClient):
        assert client.post("/api/blog/posts", json={"title": "T", "content": "C"}).status_code == 401
        assert client.patch("/api/blog/posts/t", json={"title": "x"}).status_code == 401
        response = client.delete("/api/blog/posts/t")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized."}

    def test_create_defaults(self, admin_client: TestClient):
        post = _create(admin_client, title="Hello World", content="Body text")
        assert post["slug"] == "hello-world"
        assert post["status"] == "draft"
        assert post["publishedAt"] is None
        assert post["excerpt"] == "Body text"

    def test_validation_error(self, admin_client: TestClient):
        response = admin_client.post("/api/blog/posts", json={"title": "No body"})
        assert response.status_code == 400
        assert response.json() == {"error": "Title and content are required"}

    def test_non_string_title_rejected(self, admin_client: TestClient):
        response = admin_client.post("/api/blog/posts", json={"title": 123, "content": "Body"})
        assert response.status_code == 400
        assert response.json() == {"error": "Title must be a string"}

    def test_conflict(self, admin_client: TestClient):
        _create(admin_client, title="Dup", content="Body")
        response = admin_client.post("/api/blog/posts", json={"title": "Dup", "content": "Body"})
        assert response.status_code == 409

    def test_update_and_publish(self, admin_client: TestClient):
        _create(admin_client, title="Draft Post", content="Body")

        response = admin_client.patch("/api/blog/posts/draft-post", json={"status": "published"})
        assert response.status_code == 200
        assert response.json()["post"]["publishedAt"] is not None

    def test_update_missing(self, admin_client: TestClient):
        response = admin_client.patch("/api/blog/posts/missing", json={"title": "x"})
        assert response.status_code == 404
        assert response.json() == {"error": "Post not found"}

    def test_delete(self, admin_client: TestClient):
        _create(admin_client, title="Gone", content="Body")
        response = admin_client.delete("/api/blog/posts/gone")
        assert response.json() == {"success": True}
        assert admin_client.delete("/api/blog/posts/gone").status_code == 404

    def test_read_only_storage(self, admin_client: TestClient):
        admin_client.app.state.post_store.read_only = True
        response = admin_client.post("/api/blog/posts", json={"title": "T", "content": "C"})
        assert response.status_code == 503
        assert "BLOG_DATA_DIR" in response.json()["error"]


class TestPostReads:
    def test_public_list_hides_drafts_even_when_asked(self, admin_client: TestClient):
        _create(admin_client, title="Live", content="Body", status="published")
        _create(admin_client, title="Hidden", content="Body")
        admin_client.post("/api/blog/logout")

        response = admin_client.get("/api/blog/posts?includeDrafts=1&includeArchived=true")
        assert [p["slug"] for p in response.json()["posts"]] == ["live"]

    def test_admin_flags(self, admin_client: TestClient):
        _create(admin_client, title="Live", content="Body", status="published")
        _create(admin_client, title="Hidden", content="Body")
        _create(admin_client, title="Shelved", content="Body", status="archived")

        default = admin_client.get("/api/blog/posts").json()["posts"]
        assert [p["slug"] for p in default] == ["live"]

        drafts = admin_client.get("/api/blog/posts?includeDrafts=yes").json()["posts"]
        assert {p["slug"] for p in drafts} == {"live", "hidden"}

        everything = admin_client.get(
            "/api/blog/posts?includeDrafts=true&includeArchived=1"
        ).json()["posts"]
        assert {p["slug"] for p in everything} == {"live", "hidden", "shelved"}

    def test_single_post_renders_markdown(self, admin_client: TestClient):
        _create(admin_client, title="Rendered", content="## Heading\n\nSome *text*", status="published")

        post = admin_client.get("/api/blog/posts/rendered").json()["post"]
        assert "<h2" in post["contentHtml"]
        assert "<em>text</em>" in post["contentHtml"]
        assert post["readingTime"] == 1

    def test_draft_hidden_from_public(self, admin_client: TestClient):
        _create(admin_client, title="Secret", content="Body")
        assert admin_client.get("/api/blog/posts/secret").status_code == 200

        admin_client.post("/api/blog/logout")
        assert admin_client.get("/api/blog/posts/secret").status_code == 404

    def test_persisted_to_data_dir(self, admin_client: TestClient):
        _create(admin_client, title="On Disk", content="Body")
        path = admin_client.app.state.settings.data_dir / "posts.json"
        assert json.loads(path.read_text(encoding="utf-8"))[0]["slug"] == "on-disk"


# ── Medium mirror ───────────────────────────────────────────────────────

class StubMediumFeed:
    def __init__(self, posts: list[MediumPost]):
        self.posts = posts
        self.limits: list[int] = []

    async def list_medium_posts(self, limit: int = 6, include_content: bool = False):
        self.limits.append(limit)
        return self.posts[:limit]

    async def get_medium_post_by_slug(self, slug: str) -> Optional[MediumPost]:
        return next((post for post in self.posts if post.slug == slug), None)


class TestMediumRoutes:
    def _install(self, client: TestClient) -> StubMediumFeed:
        stub = StubMediumFeed([
            MediumPost(slug="one", title="One", link="https://medium.com/@t/one"),
            MediumPost(slug="two", title="Two", link="https://medium.com/@t/two"),
        ])
        client.app.state.medium_feed = stub
        return stub

    def test_list(self, client: TestClient):
        stub = self._install(client)
        response = client.get("/api/medium/posts?limit=1")
        assert response.status_code == 200
        assert [p["slug"] for p in response.json()["posts"]] == ["one"]
        assert stub.limits == [1]

    def test_limit_bounds(self, client: TestClient):
        self._install(client)
        assert client.get("/api/medium/posts?limit=0").status_code == 422
        assert client.get("/api/medium/posts?limit=31").status_code == 422

    def test_single(self, client: TestClient):
        self._install(client)
        response = client.get("/api/medium/posts/two")
        assert response.json()["post"]["title"] == "Two"

    def test_single_missing(self, client: TestClient):
        self._install(client)
        assert client.get("/api/medium/posts/three").status_code == 404


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "ok"}
