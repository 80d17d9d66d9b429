"""Integration tests for post routes.

Covers:
- GET /api/posts/feed (anonymous and authenticated, category filter, pagination)
- POST /api/posts (text posts and relocated media posts)
- GET /api/posts/user/{userId}
- GET /api/posts/{postId} and DELETE /api/posts/{postId}
"""

from uuid import uuid4

import httpx
import respx
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from leelaaverse.storage.client import FakeStorageClient
from tests.factories import create_test_post, create_test_user
from tests.helpers import auth_headers
from tests.image_fixtures import HTML_CONTENT, TINY_PNG

REMOTE_MEDIA = "https://images.example.test/photo.png"


class TestFeed:
    def test_anonymous_sees_public_only(self, client: TestClient, db_session: Session):
        author = create_test_user(db_session)
        public = create_test_post(db_session, author)
        create_test_post(db_session, author, visibility="private")

        data = client.get("/api/posts/feed").json()

        assert [p["id"] for p in data["posts"]] == [str(public.id)]
        assert data["pagination"]["total"] == 1

    def test_viewer_sees_own_private(
        self, client: TestClient, db_session: Session, test_user_id
    ):
        create_test_user(db_session, test_user_id)
        own = create_test_post(db_session, test_user_id, visibility="private")

        data = client.get("/api/posts/feed", headers=auth_headers(test_user_id)).json()

        assert [p["id"] for p in data["posts"]] == [str(own.id)]

    def test_pagination_newest_first(self, client: TestClient, db_session: Session):
        author = create_test_user(db_session)
        ids = [str(create_test_post(db_session, author, age_minutes=m).id) for m in (3, 2, 1)]

        data = client.get("/api/posts/feed?page=2&limit=2").json()

        assert [p["id"] for p in data["posts"]] == [ids[0]]
        assert data["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}

    def test_category_filter(self, client: TestClient, db_session: Session):
        author = create_test_user(db_session)
        create_test_post(db_session, author)
        text_post = create_test_post(db_session, author, category="text")

        data = client.get("/api/posts/feed?category=text").json()

        assert [p["id"] for p in data["posts"]] == [str(text_post.id)]

    def test_post_fields_are_camel_case(self, client: TestClient, db_session: Session):
        author = create_test_user(db_session)
        create_test_post(db_session, author)

        post = client.get("/api/posts/feed").json()["posts"][0]

        for key in ("authorId", "mediaUrl", "thumbnailUrl", "aiGenerated", "likesCount"):
            assert key in post


class TestCreatePost:
    def test_text_post(self, client: TestClient, test_user_id):
        response = client.post(
            "/api/posts",
            json={"category": "text", "caption": "Hello world", "tags": ["Intro"]},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 201
        post = response.json()["post"]
        assert post["caption"] == "Hello world"
        assert post["aiGenerated"] is False
        assert post["tags"] == ["intro"]

    def test_text_post_without_caption(self, client: TestClient, test_user_id):
        response = client.post(
            "/api/posts", json={"category": "text"}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 400
        assert response.json()["code"] == "E_CAPTION_REQUIRED"

    def test_image_post_without_media(self, client: TestClient, test_user_id):
        response = client.post(
            "/api/posts", json={"caption": "hi"}, headers=auth_headers(test_user_id)
        )

        assert response.status_code == 400
        assert response.json()["code"] == "E_MEDIA_REQUIRED"

    @respx.mock
    def test_media_is_relocated(
        self, client: TestClient, storage: FakeStorageClient, test_user_id
    ):
        respx.get(REMOTE_MEDIA).mock(return_value=httpx.Response(200, content=TINY_PNG))

        response = client.post(
            "/api/posts",
            json={"mediaUrl": REMOTE_MEDIA, "caption": "sunset"},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 201
        post = response.json()["post"]
        assert post["mediaUrl"] != REMOTE_MEDIA
        assert post["mediaType"] == "image/png"
        assert storage.paths()[0].startswith(f"posts/{test_user_id}/")

    @respx.mock
    def test_non_image_media_rejected(self, client: TestClient, test_user_id):
        respx.get(REMOTE_MEDIA).mock(return_value=httpx.Response(200, content=HTML_CONTENT))

        response = client.post(
            "/api/posts",
            json={"mediaUrl": REMOTE_MEDIA},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 500
        assert response.json()["code"] == "E_UPLOAD_FAILED"

    @respx.mock
    def test_internal_media_url_not_fetched(
        self, client: TestClient, storage: FakeStorageClient, test_user_id
    ):
        internal = "http://169.254.169.254/latest/meta-data/secret.png"

        response = client.post(
            "/api/posts",
            json={"category": "image", "mediaUrl": internal},
            headers=auth_headers(test_user_id),
        )

        assert response.status_code == 500
        assert response.json()["code"] == "E_UPLOAD_FAILED"
        assert not respx.calls
        assert storage.paths() == []


class TestUserPosts:
    def test_lists_authors_visible_posts(self, client: TestClient, db_session: Session):
        author = create_test_user(db_session)
        other = create_test_user(db_session)
        mine = create_test_post(db_session, author)
        create_test_post(db_session, author, visibility="private")
        create_test_post(db_session, other)

        data = client.get(f"/api/posts/user/{author}").json()

        assert [p["id"] for p in data["posts"]] == [str(mine.id)]


class TestSinglePost:
    def test_get_counts_views(self, client: TestClient, db_session: Session):
        author = create_test_user(db_session)
        post = create_test_post(db_session, author)

        client.get(f"/api/posts/{post.id}")
        data = client.get(f"/api/posts/{post.id}").json()

        assert data["post"]["viewsCount"] == 2

    def test_unknown_post(self, client: TestClient):
        response = client.get(f"/api/posts/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["code"] == "E_POST_NOT_FOUND"

    def test_delete_by_author(self, client: TestClient, db_session: Session, test_user_id):
        create_test_user(db_session, test_user_id)
        post = create_test_post(db_session, test_user_id)
        headers = auth_headers(test_user_id)

        response = client.delete(f"/api/posts/{post.id}", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Post deleted"}
        assert client.get(f"/api/posts/{post.id}", headers=headers).status_code == 404

    def test_delete_by_other_user_forbidden(
        self, client: TestClient, db_session: Session, test_user_id
    ):
        author = create_test_user(db_session)
        post = create_test_post(db_session, author)

        response = client.delete(f"/api/posts/{post.id}", headers=auth_headers(test_user_id))

        assert response.status_code == 403

    def test_delete_requires_auth(self, client: TestClient, db_session: Session):
        author = create_test_user(db_session)
        post = create_test_post(db_session, author)

        assert client.delete(f"/api/posts/{post.id}").status_code == 401
