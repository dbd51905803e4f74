"""
tests/integration/test_auth.py — Integration tests for authentication endpoints.

Endpoints covered (url_prefix=/api/auth):
  POST /auth/signup   → 201 + cookies
  POST /auth/login    → 200 + cookies
  POST /auth/refresh  → 200 + new access cookie
  POST /auth/logout   → 200, cookies cleared
  GET  /auth/profile  → 200
  PUT  /auth/profile  → 200

Error cases:
  DUPLICATE_EMAIL          400 — email already registered
  INVALID_CREDENTIALS      401 — wrong email or password
  TOKEN_MISSING            401 — no access cookie
  TOKEN_EXPIRED            401 — forged expired access token
  TOKEN_INVALID            401 — malformed / wrongly signed token
  ACCOUNT_NOT_FOUND        401 — user deleted after login
  REFRESH_TOKEN_MISSING    401
  REFRESH_TOKEN_INVALID    401 — revoked or superseded refresh token
  REFRESH_TOKEN_EXPIRED    401
  FORBIDDEN                403 — customer on an admin endpoint
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from backend.app.extensions import db
from backend.app.models.refresh_token import RefreshToken
from backend.app.models.user import User
from backend.app.services import auth_service

from .conftest import cookie_header, cookie_value, login, signup


def _settings(app):
    return app.extensions["auth_settings"]


def _refresh_rows(app, user_id: int) -> int:
    with app.app_context():
        return db.session.execute(
            select(func.count()).select_from(RefreshToken).where(RefreshToken.user_id == user_id)
        ).scalar_one()


# ═══════════════════════════════════════════════════════════════════════════
# POST /auth/signup
# ═══════════════════════════════════════════════════════════════════════════

class TestSignup:

    def test_signup_returns_201_user_without_password(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "a@x.com", "password": "secret1", "name": "A",
        })

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        user = body["data"]["user"]
        assert user["email"] == "a@x.com"
        assert user["name"] == "A"
        assert user["role"] == "customer"
        assert "password" not in user
        assert "password_hash" not in user

    def test_signup_sets_http_only_cookies(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "a@x.com", "password": "secret1", "name": "A",
        })

        access = cookie_header(resp, "accessToken")
        refresh = cookie_header(resp, "refreshToken")
        assert access is not None and refresh is not None
        assert "HttpOnly" in access
        assert "Max-Age=300" in access        # testing config: 5 min
        assert "Max-Age=3600" in refresh      # testing config: 1 h
        assert "Path=/" in refresh
        assert "SameSite=Lax" in access
        assert "Secure" not in access

    def test_duplicate_email_returns_400_and_creates_no_row(self, app, client):
        signup(client, email="dup@x.com")
        resp = app.test_client().post("/api/auth/signup", json={
            "email": "DUP@x.com", "password": "secret1", "name": "B",
        })

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "DUPLICATE_EMAIL"
        with app.app_context():
            count = db.session.execute(
                select(func.count()).select_from(User).where(User.email == "dup@x.com")
            ).scalar_one()
        assert count == 1

    def test_missing_password_returns_missing_field(self, client):
        resp = client.post("/api/auth/signup", json={"email": "a@x.com", "name": "A"})

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["success"] is False
        assert body["code"] == "MISSING_FIELD"
        assert body["field"] == "password"

    def test_short_password_returns_invalid_field(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "a@x.com", "password": "12345", "name": "A",
        })
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_FIELD"


# ═══════════════════════════════════════════════════════════════════════════
# POST /auth/login
# ═══════════════════════════════════════════════════════════════════════════

class TestLogin:

    def test_login_sets_both_cookies(self, app, client):
        signup(client, email="a@x.com")
        fresh = app.test_client()

        resp = fresh.post("/api/auth/login", json={"email": "a@x.com", "password": "secret1"})

        assert resp.status_code == 200
        assert resp.get_json()["data"]["user"]["email"] == "a@x.com"
        assert cookie_value(resp, "accessToken")
        assert cookie_value(resp, "refreshToken")

    def test_wrong_password_and_unknown_email_look_the_same(self, client):
        signup(client, email="a@x.com")

        wrong_pw = client.post("/api/auth/login", json={"email": "a@x.com", "password": "nope123"})
        unknown = client.post("/api/auth/login", json={"email": "b@x.com", "password": "secret1"})

        assert wrong_pw.status_code == unknown.status_code == 401
        assert wrong_pw.get_json() == unknown.get_json()
        assert wrong_pw.get_json()["code"] == "INVALID_CREDENTIALS"

    def test_login_is_case_insensitive_on_email(self, client):
        signup(client, email="a@x.com")
        assert login(client, email="A@X.com")["email"] == "a@x.com"

    def test_new_login_supersedes_previous_session(self, app):
        first, second = app.test_client(), app.test_client()
        user = signup(first, email="a@x.com")
        login(second, email="a@x.com")

        # Single-session policy: the first client's refresh token is gone.
        resp = first.post("/api/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"
        assert second.post("/api/auth/refresh").status_code == 200
        assert _refresh_rows(app, user["id"]) == 1

    def test_multi_session_policy_keeps_older_sessions(self, app):
        original = _settings(app)
        app.extensions["auth_settings"] = dataclasses.replace(
            original, single_session_per_user=False,
        )
        try:
            first, second = app.test_client(), app.test_client()
            user = signup(first, email="a@x.com")
            login(second, email="a@x.com")

            assert first.post("/api/auth/refresh").status_code == 200
            assert second.post("/api/auth/refresh").status_code == 200
            assert _refresh_rows(app, user["id"]) == 2
        finally:
            app.extensions["auth_settings"] = original


# ═══════════════════════════════════════════════════════════════════════════
# Session guard
# ═══════════════════════════════════════════════════════════════════════════

class TestSessionGuard:

    def test_no_cookie_returns_token_missing(self, client):
        resp = client.get("/api/auth/profile")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_MISSING"

    def test_expired_access_token(self, app, client):
        user = signup(client)
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        client.set_cookie(
            "accessToken",
            auth_service.create_access_token(user["id"], _settings(app), now=past),
        )

        resp = client.get("/api/auth/profile")

        assert resp.status_code == 401
        body = resp.get_json()
        assert body["code"] == "TOKEN_EXPIRED"
        assert body["message"] == "Access token expired."

    def test_tampered_token_is_invalid(self, client):
        signup(client)
        client.set_cookie("accessToken", "eyJhbGciOiJIUzI1NiJ9.e30.bad-signature")

        resp = client.get("/api/auth/profile")

        assert resp.status_code == 401
        assert resp.get_json()["code"] == "TOKEN_INVALID"

    def test_refresh_token_is_not_accepted_as_access_token(self, client):
        resp = client.post("/api/auth/signup", json={
            "email": "a@x.com", "password": "secret1", "name": "A",
        })
        client.set_cookie("accessToken", cookie_value(resp, "refreshToken"))

        assert client.get("/api/auth/profile").get_json()["code"] == "TOKEN_INVALID"

    def test_deleted_account(self, app, client):
        user = signup(client)
        with app.app_context():
            db.session.delete(db.session.get(User, user["id"]))
            db.session.commit()

        resp = client.get("/api/auth/profile")

        assert resp.status_code == 401
        assert resp.get_json()["code"] == "ACCOUNT_NOT_FOUND"

    def test_customer_on_admin_endpoint_is_forbidden(self, customer):
        resp = customer.get("/api/users/")
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "FORBIDDEN"

    def test_admin_endpoint_without_cookie_is_401_not_403(self, client):
        assert client.get("/api/users/").status_code == 401


# ═══════════════════════════════════════════════════════════════════════════
# Refresh + logout
# ═══════════════════════════════════════════════════════════════════════════

class TestRefreshAndLogout:

    def test_full_session_lifecycle(self, app, client):
        """signup → login → expired access → refresh → logout → old refresh rejected."""
        resp = client.post("/api/auth/signup", json={
            "email": "a@x.com", "password": "secret1", "name": "A",
        })
        assert resp.status_code == 201
        user_id = resp.get_json()["data"]["user"]["id"]

        resp = client.post("/api/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert resp.status_code == 200
        refresh_token = cookie_value(resp, "refreshToken")

        past = datetime.now(timezone.utc) - timedelta(hours=1)
        client.set_cookie(
            "accessToken", auth_service.create_access_token(user_id, _settings(app), now=past),
        )
        resp = client.get("/api/auth/profile")
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Access token expired."

        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 200
        assert cookie_value(resp, "accessToken")
        assert cookie_header(resp, "refreshToken") is None  # not rotated
        assert client.get("/api/auth/profile").status_code == 200

        # The same refresh token keeps working.
        assert client.post("/api/auth/refresh").status_code == 200

        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        for name in ("accessToken", "refreshToken"):
            header = cookie_header(resp, name)
            assert header is not None
            assert header.startswith(f"{name}=;")
            assert "Max-Age=0" in header

        client.set_cookie("refreshToken", refresh_token)
        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"
        assert _refresh_rows(app, user_id) == 0

    def test_refresh_without_cookie(self, client):
        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_MISSING"

    def test_expired_refresh_token(self, app, client):
        user = signup(client)
        past = datetime.now(timezone.utc) - timedelta(days=30)
        client.set_cookie(
            "refreshToken",
            auth_service.create_refresh_token(user["id"], _settings(app), now=past),
        )

        resp = client.post("/api/auth/refresh")

        assert resp.status_code == 401
        body = resp.get_json()
        assert body["code"] == "REFRESH_TOKEN_EXPIRED"
        assert body["message"] == "Refresh token expired, please login."

    def test_validly_signed_but_never_stored_refresh_token(self, app, client):
        user = signup(client)
        client.set_cookie(
            "refreshToken", auth_service.create_refresh_token(user["id"], _settings(app)),
        )

        resp = client.post("/api/auth/refresh")

        assert resp.status_code == 401
        assert resp.get_json()["code"] == "REFRESH_TOKEN_INVALID"

    def test_logout_without_cookies_still_succeeds(self, client):
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert cookie_header(resp, "accessToken") is not None

    def test_logout_survives_database_error(self, app, client, monkeypatch):
        signup(client)

        def broken_logout(*args, **kwargs):
            from sqlalchemy.exc import OperationalError
            raise OperationalError("DELETE", {}, Exception("database is down"))

        monkeypatch.setattr(auth_service, "logout_user", broken_logout)

        resp = client.post("/api/auth/logout")

        assert resp.status_code == 200
        assert cookie_header(resp, "refreshToken").startswith("refreshToken=;")


# ═══════════════════════════════════════════════════════════════════════════
# GET / PUT /auth/profile
# ═══════════════════════════════════════════════════════════════════════════

class TestProfile:

    def test_get_profile(self, client):
        signup(client, name="Alice", email="alice@test.com", phone="0100")

        resp = client.get("/api/auth/profile")

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["user"]["email"] == "alice@test.com"
        assert data["user"]["phone"] == "0100"
        assert data["orders"] == []

    def test_update_profile_fields(self, client):
        signup(client)

        resp = client.put("/api/auth/profile", json={"name": "Alicia", "address": "1 Main St"})

        assert resp.status_code == 200
        user = resp.get_json()["data"]["user"]
        assert user["name"] == "Alicia"
        assert user["address"] == "1 Main St"

    def test_change_password(self, app, client):
        signup(client)

        resp = client.put("/api/auth/profile", json={
            "current_password": "secret1", "new_password": "another1",
        })

        assert resp.status_code == 200
        assert login(app.test_client(), password="another1")["email"] == "alice@test.com"

    def test_change_password_with_wrong_current_password(self, client):
        signup(client)

        resp = client.put("/api/auth/profile", json={
            "current_password": "wrong-pass", "new_password": "another1",
        })

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_CURRENT_PASSWORD"

    def test_email_taken_by_someone_else(self, app, client):
        signup(app.test_client(), name="Bob", email="bob@test.com")
        signup(client)

        resp = client.put("/api/auth/profile", json={"email": "bob@test.com"})

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "DUPLICATE_EMAIL"
