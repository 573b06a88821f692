"""API tests for authentication, sessions and profiles."""

import io

import pytest

from cyphire.models import Plan


# ── Sessions ──────────────────────────────────────────────────────────────

class TestAuth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_signup_sets_cookie_and_returns_profile(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"name": "Asha Rao", "email": "asha@example.com", "password": "correct-horse-42"},
            headers={"X-Forwarded-For": "10.8.0.1"},
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["user"]["email"] == "asha@example.com"
        assert "password_hash" not in body["user"]
        assert body["token"]
        cookie = response.headers["Set-Cookie"]
        assert cookie.startswith("token=")
        assert "HttpOnly" in cookie

    def test_signup_validation_error_shape(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"name": "A", "email": "not-an-email", "password": "short"},
        )
        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] == "Validation failed"
        assert {d["field"] for d in body["details"]} == {"name", "email", "password"}

    def test_duplicate_email(self, client, register):
        register(email="asha@example.com")
        response = client.post(
            "/api/auth/signup",
            json={"name": "Asha", "email": "asha@example.com", "password": "correct-horse-42"},
            headers={"X-Forwarded-For": "10.8.0.2"},
        )
        assert response.status_code == 409

    def test_signin_and_me(self, client, register):
        register(name="Asha Rao", email="asha@example.com")
        response = client.post(
            "/api/auth/signin",
            json={"email": "asha@example.com", "password": "correct-horse-42"},
        )
        assert response.status_code == 200
        token = response.get_json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.get_json()["user"]["name"] == "Asha Rao"

    def test_cookie_session(self, client, register):
        _, headers = register()
        token = headers["Authorization"].split(" ", 1)[1]
        response = client.get("/api/auth/me", headers={"Cookie": f"token={token}"})
        assert response.status_code == 200

    def test_bad_credentials(self, client, register):
        register(email="asha@example.com")
        response = client.post(
            "/api/auth/signin",
            json={"email": "asha@example.com", "password": "wrong-password"},
        )
        assert response.status_code == 401
        assert response.get_json() == {"error": "Invalid credentials"}

    def test_missing_and_forged_tokens(self, client):
        assert client.get("/api/auth/me").get_json()["error"] == "Not authorized, no token"
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401
        assert response.get_json()["error"] == "Not authorized, token failed"

    def test_blocked_user_refused(self, client, register, app):
        user, headers = register()
        with app.app_context():
            from cyphire.workflows import AccountManager

            settings = app.config["SETTINGS"]
            AccountManager(settings.data_dir, settings).block_user(user["id"])
        response = client.get("/api/auth/me", headers=headers)
        assert response.status_code == 403
        assert response.get_json()["error"] == "Account is blocked"

    def test_signout_clears_cookie(self, client):
        response = client.post("/api/auth/signout")
        assert response.status_code == 200
        assert "token=;" in response.headers["Set-Cookie"]

    def test_auth_flag_off(self, client, settings):
        settings.flags["FLAG_AUTH"] = False
        response = client.post("/api/auth/signin", json={"email": "a@example.com", "password": "x"})
        assert response.status_code == 403
        assert response.get_json() == {"success": False, "error": "Feature FLAG_AUTH is disabled"}


class TestNotifications:
    def test_selection_notification_round_trip(self, client, awarded):
        headers = awarded["worker_headers"]
        notifications = client.get("/api/auth/notifications", headers=headers).get_json()["notifications"]
        assert notifications[0]["type"] == "selection"

        response = client.post("/api/auth/notifications/0/read", headers=headers)
        assert response.get_json()["notifications"][0]["read"] is True

        response = client.delete("/api/auth/notifications/0", headers=headers)
        assert response.get_json()["notifications"] == []

        response = client.delete("/api/auth/notifications/0", headers=headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("method, path", [
        ("post", "/api/auth/notifications/-1/read"),
        ("delete", "/api/auth/notifications/-1"),
    ])
    def test_negative_index(self, client, awarded, method, path):
        response = getattr(client, method)(path, headers=awarded["worker_headers"])
        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid index"}


# ── Profiles ──────────────────────────────────────────────────────────────

class TestUsers:
    def test_update_profile_and_public_view(self, client, register):
        _, headers = register(name="Asha")
        response = client.put(
            "/api/users/me",
            json={"name": "Asha Rao", "bio": "Designer", "skills": ["figma", "css"], "phone": "+91 90000"},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.get_json()["user"]["slug"] == "asha-rao"

        public = client.get("/api/users/slug/asha-rao/public").get_json()["user"]
        assert public["bio"] == "Designer"
        assert "phone" not in public
        assert "email" not in public

        assert client.get("/api/users/slug/nobody/public").status_code == 404

    def test_avatar_upload(self, client, register, settings):
        _, headers = register()
        response = client.post(
            "/api/users/avatar",
            data={"avatar": (io.BytesIO(b"\x89PNG fake"), "me.png", "image/png")},
            headers=headers,
            content_type="multipart/form-data",
        )
        assert response.status_code == 200
        avatar = response.get_json()["avatar"]
        assert avatar.startswith("/uploads/avatars/")
        assert client.get(avatar).data == b"\x89PNG fake"

    def test_avatar_requires_file(self, client, register):
        _, headers = register()
        response = client.post("/api/users/avatar", data={}, headers=headers)
        assert response.status_code == 400

    def test_projects_and_media(self, client, register):
        _, headers = register()
        response = client.post(
            "/api/users/projects",
            json={"projects": [{"title": "Portfolio", "link": "https://example.com"}]},
            headers=headers,
        )
        assert response.status_code == 200

        response = client.post(
            "/api/users/projects/0/media",
            data={"files": [(io.BytesIO(b"a"), "a.png", "image/png"), (io.BytesIO(b"b"), "b.mp4", "video/mp4")]},
            headers=headers,
            content_type="multipart/form-data",
        )
        assert response.status_code == 200
        media = response.get_json()["project"]["media"]
        assert [m["type"] for m in media] == ["image", "video"]

        response = client.delete(f"/api/users/projects/0/media/{media[0]['public_id']}", headers=headers)
        assert len(response.get_json()["project"]["media"]) == 1

    def test_project_media_needs_metadata(self, client, register):
        _, headers = register()
        response = client.post(
            "/api/users/projects/1/media",
            data={"files": [(io.BytesIO(b"a"), "a.png", "image/png")]},
            headers=headers,
            content_type="multipart/form-data",
        )
        assert response.status_code == 400

    def test_plan_change(self, client, register):
        _, headers = register()
        response = client.patch("/api/users/me/plan", json={"plan": Plan.PLUS.value}, headers=headers)
        user = response.get_json()["user"]
        assert user["plan"] == "plus"
        assert user["plan_expires_at"] is not None

        response = client.patch("/api/users/me/plan", json={"plan": "platinum"}, headers=headers)
        assert response.status_code == 400

    def test_admin_user_routes(self, client, register, app):
        _, headers = register(email="member@example.com")
        target, _ = register(email="target@example.com")
        assert client.get("/api/users", headers=headers).status_code == 403

        settings = app.config["SETTINGS"]
        from cyphire.workflows import AccountManager

        AccountManager(settings.data_dir, settings).promote("member@example.com")
        assert len(client.get("/api/users", headers=headers).get_json()["users"]) == 2

        response = client.patch(f"/api/users/{target['id']}/block", json={"blocked": True}, headers=headers)
        assert response.get_json()["user"]["is_blocked"] is True

        assert client.delete(f"/api/users/{target['id']}", headers=headers).status_code == 200
        assert client.delete(f"/api/users/{target['id']}", headers=headers).status_code == 404
