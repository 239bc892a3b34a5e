"""Tests for the session routes and cookie handling."""

import pytest
from fastapi.testclient import TestClient

from storelink.api.main import create_app
from storelink.config import Settings


def _cookie_cleared(response) -> bool:
    header = response.headers.get("set-cookie", "")
    return "session_token=" in header and "Max-Age=0" in header


class TestGetSession:

    def test_valid_session_returns_user(self, client, seller_headers):
        response = client.get("/api/v1/auth/session", headers=seller_headers)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "user": {"userId": "id-alice", "username": "alice", "userType": "seller"},
        }
        assert "set-cookie" not in response.headers

    def test_admin_session_is_returned(self, client, issue_session):
        token = issue_session("root", "admin")
        response = client.get("/api/v1/auth/session", headers={"Cookie": f"session_token={token}"})
        assert response.json()["user"]["userType"] == "admin"

    def test_missing_cookie(self, client):
        response = client.get("/api/v1/auth/session")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NO_TOKEN"
        assert _cookie_cleared(response)

    @pytest.mark.parametrize("token", ["short", "x" * 200, "bad token with spaces!!", "A" * 43])
    def test_invalid_token(self, client, token):
        response = client.get("/api/v1/auth/session", headers={"Cookie": f"session_token={token}"})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": {"code": "INVALID_SESSION", "message": "Invalid session"},
        }
        assert _cookie_cleared(response)

    def test_expired_session(self, client, seller_headers, clock):
        clock.advance(seconds=3600)
        response = client.get("/api/v1/auth/session", headers=seller_headers)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_EXPIRED"
        assert _cookie_cleared(response)

    def test_session_valid_just_before_expiry(self, client, seller_headers, clock):
        clock.advance(seconds=3599)
        assert client.get("/api/v1/auth/session", headers=seller_headers).status_code == 200


class TestSlidingSession:

    @pytest.fixture
    def sliding_client(self, database, key, clock):
        settings = Settings(session_ttl_seconds=3600, session_sliding=True, webhook_secret="s3cret")
        app = create_app(settings=settings, database=database, credential_key=key, clock=clock)
        with TestClient(app) as test_client:
            yield test_client

    def test_cookie_refreshed_and_expiry_extended(self, sliding_client, seller_headers, clock):
        clock.advance(seconds=3000)
        response = sliding_client.get("/api/v1/auth/session", headers=seller_headers)
        assert response.status_code == 200
        cookie = response.headers["set-cookie"]
        assert "Max-Age=3600" in cookie
        assert "HttpOnly" in cookie

        clock.advance(seconds=3000)
        assert sliding_client.get(
            "/api/v1/auth/session", headers=seller_headers
        ).status_code == 200


class TestLogout:

    def test_logout_revokes_session(self, client, seller_headers):
        response = client.post("/api/v1/auth/logout", headers=seller_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert _cookie_cleared(response)

        after = client.get("/api/v1/auth/session", headers=seller_headers)
        assert after.status_code == 401
        assert after.json()["error"]["code"] == "INVALID_SESSION"

    def test_logout_without_cookie_still_succeeds(self, client):
        response = client.post("/api/v1/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_logout_twice(self, client, seller_headers):
        client.post("/api/v1/auth/logout", headers=seller_headers)
        assert client.post("/api/v1/auth/logout", headers=seller_headers).status_code == 200

    def test_logout_only_revokes_own_session(self, client, issue_session):
        first = {"Cookie": f"session_token={issue_session('alice')}"}
        second = {"Cookie": f"session_token={issue_session('alice')}"}

        client.post("/api/v1/auth/logout", headers=first)
        assert client.get("/api/v1/auth/session", headers=second).status_code == 200


class TestCookieAttributes:

    def test_cleared_cookie_is_secure_and_http_only(self, client):
        cookie = client.post("/api/v1/auth/logout").headers["set-cookie"]
        assert "HttpOnly" in cookie
        assert "Secure" in cookie
        assert "SameSite=lax" in cookie
        assert "Path=/" in cookie
