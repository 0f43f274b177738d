import inspect
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from blog_backend import routes
from blog_backend.app import create_app
from blog_backend.config import Settings
from blog_backend.content_store import ContentStore
from blog_backend.identity import InMemoryIdentityProvider
from blog_backend.kv import InMemoryKvStore
from blog_backend.storage import InMemoryStorageClient


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.kv = InMemoryKvStore()
        self.identity = InMemoryIdentityProvider()
        self.store = ContentStore(self.kv, self.identity, InMemoryStorageClient())
        settings = Settings(use_in_memory_backends=True)
        self.client = TestClient(create_app(settings, content_store=self.store))

    def signup(self, username):
        response = self.client.post(
            "/api/signup",
            json={
                "email": f"{username}@example.com",
                "password": "secret-pass",
                "username": username,
            },
        )
        self.assertEqual(response.status_code, 200)
        return response.json()["userId"]

    def login(self, username):
        response = self.client.post(
            "/api/auth/login",
            json={"email": f"{username}@example.com", "password": "secret-pass"},
        )
        self.assertEqual(response.status_code, 200)
        return {"Authorization": f"Bearer {response.json()['accessToken']}"}

    def make_admin(self, user_id):
        record = self.kv.get(f"users:{user_id}")
        record["role"] = "admin"
        self.kv.set(f"users:{user_id}", record)

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.json(), {"status": "ok"})

    def test_signup_and_fetch_user(self):
        user_id = self.signup("ann")
        response = self.client.get(f"/api/user/{user_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["username"], "ann")
        self.assertEqual(response.json()["role"], "user")

        response = self.client.get("/api/user-by-email/ann@example.com")
        self.assertEqual(response.json()["id"], user_id)

        response = self.client.get("/api/user/nobody")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json(), {"error": "User not found", "kind": "NotFoundError"}
        )

    def test_signup_errors(self):
        response = self.client.post(
            "/api/signup", json={"email": "ann@example.com", "password": "secret-pass"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["kind"], "ValidationError")

        self.signup("ann")
        response = self.client.post(
            "/api/signup",
            json={
                "email": "ann@example.com",
                "password": "secret-pass",
                "username": "again",
            },
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["kind"], "AuthProviderError")

    def test_update_user(self):
        ann = self.signup("ann")
        self.signup("bob")
        headers = self.login("ann")

        response = self.client.put(f"/api/user/{ann}", json={"bio": "hello"})
        self.assertEqual(response.status_code, 401)

        response = self.client.put(
            f"/api/user/{ann}", json={"bio": "hello"}, headers=headers
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["bio"], "hello")

        bob_headers = self.login("bob")
        response = self.client.put(
            f"/api/user/{ann}", json={"bio": "pwned"}, headers=bob_headers
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["kind"], "AuthorizationError")

    def test_post_lifecycle(self):
        self.signup("ann")
        headers = self.login("ann")

        response = self.client.post("/api/posts", json={"title": "T"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["kind"], "AuthenticationError")

        response = self.client.post(
            "/api/posts",
            json={"title": "T", "content": "<p>hi</p>", "tags": ["x", "y"]},
            headers=headers,
        )
        self.assertEqual(response.status_code, 200)
        post = response.json()
        self.assertRegex(post["id"], r"^post_\d+_[a-z0-9]+$")
        self.assertEqual(post["authorName"], "ann")

        fetched = self.client.get(f"/api/posts/{post['id']}").json()
        self.assertEqual(fetched["title"], "T")
        self.assertEqual(fetched["content"], "<p>hi</p>")
        self.assertEqual(fetched["tags"], ["x", "y"])

        response = self.client.put(
            f"/api/posts/{post['id']}", json={"status": "archived"}, headers=headers
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.put(
            f"/api/posts/{post['id']}", json={"status": "draft"}, headers=headers
        )
        self.assertEqual(response.json()["status"], "draft")

        for expected in (1, 2):
            response = self.client.post(f"/api/posts/{post['id']}/like")
            self.assertEqual(response.json(), {"likes": expected})

        response = self.client.delete(f"/api/posts/{post['id']}", headers=headers)
        self.assertEqual(response.json(), {"message": "Post deleted successfully"})
        self.assertEqual(self.client.get(f"/api/posts/{post['id']}").status_code, 404)

    def test_non_owner_cannot_modify_post(self):
        self.signup("ann")
        self.signup("bob")
        post = self.client.post(
            "/api/posts", json={"title": "T"}, headers=self.login("ann")
        ).json()
        bob = self.login("bob")

        response = self.client.put(
            f"/api/posts/{post['id']}", json={"title": "Mine"}, headers=bob
        )
        self.assertEqual(response.status_code, 403)
        response = self.client.delete(f"/api/posts/{post['id']}", headers=bob)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.client.get(f"/api/posts/{post['id']}").json(), post)

    def test_list_posts_visibility_and_filters(self):
        self.signup("ann")
        headers = self.login("ann")
        self.client.post(
            "/api/posts",
            json={"title": "Draft", "status": "draft", "categories": ["B"]},
            headers=headers,
        )
        self.client.post(
            "/api/posts",
            json={"title": "Live", "categories": ["A", "B"], "featured": True},
            headers=headers,
        )

        anonymous = self.client.get("/api/posts").json()
        self.assertEqual([p["title"] for p in anonymous], ["Live"])

        # A public anon key is not a user token and counts as anonymous.
        anon_key = {"Authorization": "Bearer public-anon-key"}
        self.assertEqual(len(self.client.get("/api/posts", headers=anon_key).json()), 1)

        signed_in = self.client.get("/api/posts", headers=headers).json()
        self.assertEqual(len(signed_in), 2)

        filtered = self.client.get(
            "/api/posts",
            params={"category": "B", "featured": "true", "search": "LIVE"},
            headers=headers,
        ).json()
        self.assertEqual([p["title"] for p in filtered], ["Live"])

        self.assertEqual(self.client.get("/api/categories").json(), ["A", "B"])
        self.assertEqual(self.client.get("/api/tags").json(), [])

    def test_comments(self):
        self.signup("ann")
        headers = self.login("ann")
        post = self.client.post(
            "/api/posts", json={"title": "T"}, headers=headers
        ).json()

        response = self.client.post(
            "/api/comments", json={"postId": post["id"], "content": ""}, headers=headers
        )
        self.assertEqual(response.status_code, 400)

        with patch(
            "blog_backend.content_store.utc_now_iso",
            side_effect=["2024-01-01T00:00:00+00:00", "2024-01-02T00:00:00+00:00"],
        ):
            first = self.client.post(
                "/api/comments",
                json={"postId": post["id"], "content": "first"},
                headers=headers,
            ).json()
            second = self.client.post(
                "/api/comments",
                json={"postId": post["id"], "content": "second", "parentId": first["id"]},
                headers=headers,
            ).json()

        self.assertIsNone(first["parentId"])
        self.assertEqual(first["username"], "ann")
        listed = self.client.get(f"/api/comments/{post['id']}").json()
        self.assertEqual([c["id"] for c in listed], [first["id"], second["id"]])

        response = self.client.post(f"/api/comments/{first['id']}/like")
        self.assertEqual(response.json(), {"likes": 1})

        response = self.client.delete(f"/api/comments/{second['id']}")
        self.assertEqual(response.status_code, 401)
        response = self.client.delete(f"/api/comments/{second['id']}", headers=headers)
        self.assertEqual(response.json(), {"message": "Comment deleted successfully"})

    def test_admin_routes(self):
        root = self.signup("root")
        ann = self.signup("ann")
        self.make_admin(root)
        admin = self.login("root")
        user = self.login("ann")

        self.assertEqual(self.client.get("/api/admin/stats").status_code, 401)
        self.assertEqual(
            self.client.get("/api/admin/stats", headers=user).status_code, 403
        )

        stats = self.client.get("/api/admin/stats", headers=admin).json()
        self.assertEqual(stats["totalUsers"], 2)
        self.assertEqual(stats["totalPosts"], 0)

        users = self.client.get("/api/admin/users", headers=admin).json()
        self.assertEqual(len(users), 2)
        self.assertEqual(
            self.client.get("/api/admin/all-comments", headers=admin).json(), []
        )

        response = self.client.put(
            f"/api/admin/users/{root}/role", json={"role": "user"}, headers=user
        )
        self.assertEqual(response.status_code, 403)

        response = self.client.put(
            f"/api/admin/users/{ann}/role", json={"role": "admin"}, headers=admin
        )
        self.assertEqual(response.json()["role"], "admin")
        self.assertEqual(
            self.client.get("/api/admin/stats", headers=user).status_code, 200
        )

    def test_upload(self):
        self.signup("ann")
        headers = self.login("ann")
        files = {"file": ("photo.png", b"\x89PNG", "image/png")}

        self.assertEqual(self.client.post("/api/upload", files=files).status_code, 401)

        response = self.client.post("/api/upload", files=files, headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertIn(".png", response.json()["url"])

        response = self.client.post("/api/upload", headers=headers)
        self.assertEqual(response.status_code, 400)

        empty = {"file": ("empty.png", b"", "image/png")}
        response = self.client.post("/api/upload", files=empty, headers=headers)
        self.assertEqual(response.status_code, 200)

    def test_upload_route_runs_off_the_event_loop(self):
        # Storage uploads block; a sync handler is run in the threadpool.
        self.assertFalse(inspect.iscoroutinefunction(routes.upload))

    def test_logout_revokes_session(self):
        self.signup("ann")
        headers = self.login("ann")
        response = self.client.post("/api/auth/logout", headers=headers)
        self.assertEqual(response.status_code, 200)
        response = self.client.post("/api/posts", json={"title": "T"}, headers=headers)
        self.assertEqual(response.status_code, 401)

    def test_unexpected_errors_become_internal_errors(self):
        client = TestClient(self.client.app, raise_server_exceptions=False)
        with patch.object(self.store, "get_post", side_effect=RuntimeError("boom")):
            response = client.get("/api/posts/anything")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "boom", "kind": "InternalError"})


if __name__ == "__main__":
    unittest.main()
