"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Set / clear the auth cookies
  - Return the standard response envelope: {"success": true, "data": {...}}

No business logic here. No DB queries. No bare SQL.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it. The one exception is logout, which must always succeed.

Endpoints (url_prefix=/api/auth):
  POST   /auth/signup   → 201  + accessToken / refreshToken cookies
  POST   /auth/login    → 200  + accessToken / refreshToken cookies
  POST   /auth/refresh  → 200  + new accessToken cookie
  POST   /auth/logout   → 200  cookies cleared
  GET    /auth/profile  → 200
  PUT    /auth/profile  → 200
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from backend.app.auth_settings import AuthSettings, get_auth_settings
from backend.app.errors import AuthenticationError, ErrorCode
from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.routes.request_utils import request_payload
from backend.app.schemas.auth_schema import LoginSchema, SignupSchema, UpdateProfileSchema
from backend.app.services import auth_service

auth_bp = Blueprint("auth", __name__)


# ── Cookie helpers ─────────────────────────────────────────────────────────

def _set_cookie(response, name: str, value: str, max_age: int, settings: AuthSettings) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
    )


def _set_access_cookie(response, token: str, settings: AuthSettings) -> None:
    _set_cookie(response, settings.access_cookie, token,
                int(settings.access_ttl.total_seconds()), settings)


def _set_auth_cookies(response, tokens: auth_service.TokenPair, settings: AuthSettings) -> None:
    _set_access_cookie(response, tokens.access_token, settings)
    _set_cookie(response, settings.refresh_cookie, tokens.refresh_token,
                int(settings.refresh_ttl.total_seconds()), settings)


def _clear_auth_cookies(response, settings: AuthSettings) -> None:
    for name in (settings.access_cookie, settings.refresh_cookie):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


# ── Endpoints ──────────────────────────────────────────────────────────────

@auth_bp.route("/signup", methods=["POST"])
def signup():
    """POST /auth/signup — Create a customer account and start a session."""
    settings = get_auth_settings()
    data = SignupSchema().load(request_payload())
    user, tokens = auth_service.register_user(data, session=db.session, settings=settings)
    db.session.commit()

    response = jsonify({
        "success": True,
        "message": "User registered successfully.",
        "data": {"user": user},
    })
    _set_auth_cookies(response, tokens, settings)
    return response, 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /auth/login — Validate credentials and start a session."""
    settings = get_auth_settings()
    data = LoginSchema().load(request_payload())
    user, tokens = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        session=db.session,
        settings=settings,
    )
    db.session.commit()

    response = jsonify({
        "success": True,
        "message": "Logged in successfully.",
        "data": {"user": user},
    })
    _set_auth_cookies(response, tokens, settings)
    return response, 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """POST /auth/refresh — Exchange the refresh cookie for a new access cookie."""
    settings = get_auth_settings()
    raw = request.cookies.get(settings.refresh_cookie)
    if not raw:
        raise AuthenticationError(
            ErrorCode.REFRESH_TOKEN_MISSING,
            "No refresh token, please login.",
        )

    access_token = auth_service.refresh_access_token(raw, session=db.session, settings=settings)

    response = jsonify({"success": True, "message": "Access token refreshed."})
    _set_access_cookie(response, access_token, settings)
    return response, 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """
    POST /auth/logout — Revoke the presented refresh token. (No auth required.)

    Always answers 200 and clears both cookies; a failed deletion is logged
    and rolled back.
    """
    settings = get_auth_settings()
    raw = request.cookies.get(settings.refresh_cookie)
    try:
        auth_service.logout_user(raw, session=db.session)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Could not delete refresh token during logout")

    response = jsonify({"success": True, "message": "Logged out successfully."})
    _clear_auth_cookies(response, settings)
    return response, 200


@auth_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile():
    """GET /auth/profile — Current user and their orders."""
    result = auth_service.get_profile(user_id=g.user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200


@auth_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile():
    """PUT /auth/profile — Partial update of the current user's profile."""
    data = UpdateProfileSchema().load(request_payload())
    user = auth_service.update_profile(
        user_id=g.user_id,
        data=data,
        session=db.session,
        settings=get_auth_settings(),
    )
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "Profile updated successfully.",
        "data": {"user": user},
    }), 200
