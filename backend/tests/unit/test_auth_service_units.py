"""
Unit tests for auth_service: token issuer, refresh validation and the
branches not naturally hit in the integration flow.

No database — sessions are MagicMocks.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import jwt
import pytest

from backend.app.auth_settings import AuthSettings
from backend.app.errors import AppError, ErrorCode
from backend.app.models.refresh_token import RefreshToken
from backend.app.models.user import Role
from backend.app.services import auth_service


@pytest.fixture
def settings() -> AuthSettings:
    return AuthSettings(
        access_secret="unit-access-secret-0123456789abcdef",
        refresh_secret="unit-refresh-secret-0123456789abcdef",
        access_ttl=timedelta(hours=2),
        refresh_ttl=timedelta(days=7),
        bcrypt_rounds=4,
    )


def _user(**overrides) -> SimpleNamespace:
    fields = dict(
        id=7,
        name="Alice",
        email="alice@example.com",
        phone=None,
        address=None,
        role=Role.CUSTOMER,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        password_hash=auth_service.hash_password("secret1", 4),
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


# ═══════════════════════════════════════════════════════════════════════════
# Token issuer
# ═══════════════════════════════════════════════════════════════════════════

class TestTokenIssuer:

    def test_access_token_claims(self, settings):
        now = datetime.now(timezone.utc).replace(microsecond=0)
        token = auth_service.create_access_token(7, settings, now)

        payload = jwt.decode(token, settings.access_secret, algorithms=["HS256"])
        assert payload["userId"] == 7
        assert payload["exp"] - payload["iat"] == 2 * 3600
        assert payload["jti"]

    def test_refresh_token_signed_with_refresh_secret(self, settings):
        token = auth_service.create_refresh_token(7, settings)

        payload = jwt.decode(token, settings.refresh_secret, algorithms=["HS256"])
        assert payload["exp"] - payload["iat"] == 7 * 86400
        with pytest.raises(jwt.InvalidSignatureError):
            jwt.decode(token, settings.access_secret, algorithms=["HS256"])

    def test_two_tokens_in_same_second_differ(self, settings):
        now = datetime.now(timezone.utc)
        assert (
            auth_service.create_refresh_token(7, settings, now)
            != auth_service.create_refresh_token(7, settings, now)
        )

    def test_issue_token_pair_stores_refresh_token(self, settings):
        session = MagicMock()

        pair = auth_service.issue_token_pair(7, session, settings)

        stored = session.add.call_args.args[0]
        assert isinstance(stored, RefreshToken)
        assert stored.user_id == 7
        assert stored.token == pair.refresh_token
        session.flush.assert_called_once()

    def test_single_session_policy_deletes_all_user_rows(self, settings):
        session = MagicMock()

        auth_service.store_refresh_token(7, "tok", settings, session)

        stmt = session.execute.call_args.args[0]
        sql = str(stmt)
        assert "DELETE FROM refresh_tokens" in sql
        assert "expires_at" not in sql

    def test_multi_session_policy_only_purges_expired_rows(self, settings):
        session = MagicMock()
        multi = dataclasses.replace(settings, single_session_per_user=False)

        auth_service.store_refresh_token(7, "tok", multi, session)

        sql = str(session.execute.call_args.args[0])
        assert "DELETE FROM refresh_tokens" in sql
        assert "expires_at" in sql


# ═══════════════════════════════════════════════════════════════════════════
# Access token verification
# ═══════════════════════════════════════════════════════════════════════════

class TestDecodeAccessToken:

    def test_valid_token_returns_user_id(self, settings):
        token = auth_service.create_access_token(42, settings)
        assert auth_service.decode_access_token(token, settings) == 42

    def test_expired_token(self, settings):
        past = datetime.now(timezone.utc) - timedelta(hours=3)
        token = auth_service.create_access_token(42, settings, past)

        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(token, settings)

        assert exc_info.value.code == ErrorCode.TOKEN_EXPIRED
        assert exc_info.value.message == "Access token expired."
        assert exc_info.value.http_status == 401

    def test_wrong_secret_is_invalid(self, settings):
        token = auth_service.create_refresh_token(42, settings)

        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(token, settings)

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID

    def test_missing_user_id_claim_is_invalid(self, settings):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"iat": now, "exp": now + timedelta(minutes=5)},
            settings.access_secret,
            algorithm="HS256",
        )

        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token(token, settings)

        assert exc_info.value.code == ErrorCode.TOKEN_INVALID

    def test_garbage_token_is_invalid(self, settings):
        with pytest.raises(AppError) as exc_info:
            auth_service.decode_access_token("not.a.jwt", settings)
        assert exc_info.value.code == ErrorCode.TOKEN_INVALID


# ═══════════════════════════════════════════════════════════════════════════
# Refresh flow
# ═══════════════════════════════════════════════════════════════════════════

class TestRefreshAccessToken:

    def test_valid_stored_token_returns_new_access_token(self, settings):
        raw = auth_service.create_refresh_token(7, settings)
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = SimpleNamespace(
            expires_at=datetime.now(timezone.utc) + timedelta(days=1),
        )

        access = auth_service.refresh_access_token(raw, session, settings)

        assert auth_service.decode_access_token(access, settings) == 7

    def test_naive_expires_at_is_treated_as_utc(self, settings):
        raw = auth_service.create_refresh_token(7, settings)
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = SimpleNamespace(
            expires_at=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1),
        )

        assert auth_service.refresh_access_token(raw, session, settings)

    def test_unknown_token_is_invalid(self, settings):
        raw = auth_service.create_refresh_token(7, settings)
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = None

        with pytest.raises(AppError) as exc_info:
            auth_service.refresh_access_token(raw, session, settings)

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_INVALID
        assert exc_info.value.http_status == 401

    def test_expired_row_is_invalid(self, settings):
        raw = auth_service.create_refresh_token(7, settings)
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = SimpleNamespace(
            expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
        )

        with pytest.raises(AppError) as exc_info:
            auth_service.refresh_access_token(raw, session, settings)

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_INVALID

    def test_expired_jwt_is_reported_as_expired(self, settings):
        past = datetime.now(timezone.utc) - timedelta(days=8)
        raw = auth_service.create_refresh_token(7, settings, past)
        session = MagicMock()

        with pytest.raises(AppError) as exc_info:
            auth_service.refresh_access_token(raw, session, settings)

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_EXPIRED
        session.execute.assert_not_called()

    def test_access_token_is_not_a_refresh_token(self, settings):
        raw = auth_service.create_access_token(7, settings)

        with pytest.raises(AppError) as exc_info:
            auth_service.refresh_access_token(raw, MagicMock(), settings)

        assert exc_info.value.code == ErrorCode.REFRESH_TOKEN_INVALID


# ═══════════════════════════════════════════════════════════════════════════
# Accounts
# ═══════════════════════════════════════════════════════════════════════════

class TestAccounts:

    def test_register_duplicate_email(self, settings):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = 1

        with pytest.raises(AppError) as exc_info:
            auth_service.register_user(
                {"name": "A", "email": "a@x.com", "password": "secret1"},
                session,
                settings,
            )

        assert exc_info.value.code == ErrorCode.DUPLICATE_EMAIL
        assert exc_info.value.http_status == 400
        session.add.assert_not_called()

    def test_login_unknown_email(self, settings):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = None

        with pytest.raises(AppError) as exc_info:
            auth_service.login_user("nobody@x.com", "secret1", session, settings)

        assert exc_info.value.code == ErrorCode.INVALID_CREDENTIALS

    def test_login_wrong_password_same_error(self, settings):
        session = MagicMock()
        session.execute.return_value.scalar_one_or_none.return_value = _user()

        with pytest.raises(AppError) as exc_info:
            auth_service.login_user("alice@example.com", "wrong-pass", session, settings)

        assert exc_info.value.code == ErrorCode.INVALID_CREDENTIALS
        assert exc_info.value.message == "Invalid email or password."

    def test_logout_without_token_is_noop(self):
        session = MagicMock()
        assert auth_service.logout_user(None, session) is False
        session.execute.assert_not_called()

    def test_logout_reports_deleted_row(self):
        session = MagicMock()
        session.execute.return_value.rowcount = 1
        assert auth_service.logout_user("tok", session) is True

    def test_get_user_or_404(self):
        session = MagicMock()
        session.get.return_value = None

        with pytest.raises(AppError) as exc_info:
            auth_service.get_user_or_404(99999, session)

        assert exc_info.value.code == ErrorCode.USER_NOT_FOUND
        assert exc_info.value.http_status == 404

    def test_update_profile_rejects_wrong_current_password(self, settings):
        session = MagicMock()
        session.get.return_value = _user()

        with pytest.raises(AppError) as exc_info:
            auth_service.update_profile(
                7,
                {"current_password": "wrong-pass", "new_password": "another1"},
                session,
                settings,
            )

        assert exc_info.value.code == ErrorCode.INVALID_CURRENT_PASSWORD

    def test_update_profile_changes_password(self, settings):
        user = _user()
        session = MagicMock()
        session.get.return_value = user

        result = auth_service.update_profile(
            7,
            {"name": "Alicia", "current_password": "secret1", "new_password": "another1"},
            session,
            settings,
        )

        assert result["name"] == "Alicia"
        assert "password_hash" not in result
        assert auth_service.verify_password("another1", user.password_hash)
