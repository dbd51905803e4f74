"""
middleware/auth_middleware.py — Cookie-based session guard.

The @require_auth decorator:
  1. Reads the access token from the `accessToken` cookie
  2. Verifies signature and expiry with the access secret (AuthSettings)
  3. Loads the user the token belongs to
  4. Attaches the User to flask.g.current_user and its id to flask.g.user_id
  5. Raises the appropriate 401 AppError if any step fails

@require_admin is stacked AFTER @require_auth and only checks the role.

Error codes:
  TOKEN_MISSING     (401) — no access cookie
  TOKEN_INVALID     (401) — malformed token, bad signature, bad userId claim
  TOKEN_EXPIRED     (401) — valid token but exp claim is in the past
  ACCOUNT_NOT_FOUND (401) — user deleted after the token was issued
  FORBIDDEN         (403) — require_admin on a non-admin account
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import g, request

from backend.app.auth_settings import get_auth_settings
from backend.app.errors import AuthenticationError, AuthorizationError, ErrorCode
from backend.app.extensions import db
from backend.app.models.user import User
from backend.app.services.auth_service import decode_access_token


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces an authenticated session.

    Raises AppError for all auth failures — the global error handler converts
    these to the correct JSON response. Routes never catch AppError.

    Usage:
        @orders_bp.route("/", methods=["POST"])
        @require_auth
        def create_order():
            user_id = g.user_id
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def require_admin(f: Callable) -> Callable:
    """Must be applied below @require_auth."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None or not user.is_admin:
            raise AuthorizationError(ErrorCode.FORBIDDEN, "Admin access required.")
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the full cookie authentication sequence and sets flask.g.

    Separated from the decorator wrapper so tests can call it directly
    inside a request context.
    """
    settings = get_auth_settings()
    raw_token = request.cookies.get(settings.access_cookie)

    if not raw_token:
        raise AuthenticationError(ErrorCode.TOKEN_MISSING, "No access token, please login.")

    user_id = decode_access_token(raw_token, settings)

    user = db.session.get(User, user_id)
    if user is None:
        raise AuthenticationError(
            ErrorCode.ACCOUNT_NOT_FOUND,
            "Account no longer exists, please login again.",
        )

    g.current_user = user
    g.user_id = user.id
