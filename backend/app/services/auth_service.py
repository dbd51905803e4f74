"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - User registration, credential validation, profile read/update
  - Token issuance: access JWT + refresh JWT, signed with separate secrets
  - Refresh token lifecycle (store, validate, revoke, purge expired rows)
  - Password hashing (bcrypt) and verification

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, current_app, or HTTP cookies.
    Secrets, TTLs and the session policy arrive as an explicit AuthSettings
    argument built once by the app factory.
  - Commits are the route's responsibility — only flush here.

Token design:
  - Access token:  JWT (HS256), claims userId / iat / exp / jti,
                   signed with settings.access_secret, default TTL 2 h.
  - Refresh token: JWT (HS256), same claim shape, signed with
                   settings.refresh_secret, default TTL 7 d. The signed string
                   is stored verbatim in refresh_tokens.token and must be
                   present there to be accepted.
  - jti makes every token unique even when two are minted in the same second.
  - Session policy: with single_session_per_user, issuing a pair deletes every
    other refresh row of the user (a new login logs out older sessions).
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import NamedTuple

import bcrypt
import jwt
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from backend.app.auth_settings import AuthSettings
from backend.app.errors import (
    AuthenticationError,
    ErrorCode,
    InvalidInputError,
    NotFoundError,
)
from backend.app.models.order import Order, OrderItem
from backend.app.models.refresh_token import RefreshToken
from backend.app.models.user import User
from backend.app.services.serializers import serialize_order, serialize_user

logger = logging.getLogger(__name__)


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


# ── Private helpers ────────────────────────────────────────────────────────

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def hash_password(password: str, rounds: int) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _sign(user_id: int, secret: str, ttl, algorithm: str, now: datetime) -> str:
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + ttl,
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def _decode(token: str, secret: str, algorithm: str) -> int:
    """
    Verifies signature and expiry and returns the userId claim.

    Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError; callers map
    them onto their own error codes.
    """
    payload = jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"require": ["exp", "iat"]},
    )
    user_id = payload.get("userId")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise jwt.InvalidTokenError("userId claim missing or not an integer")
    return user_id


# ── Token issuer ───────────────────────────────────────────────────────────

def create_access_token(user_id: int, settings: AuthSettings, now: datetime | None = None) -> str:
    return _sign(user_id, settings.access_secret, settings.access_ttl,
                 settings.algorithm, now or _utcnow())


def create_refresh_token(user_id: int, settings: AuthSettings, now: datetime | None = None) -> str:
    return _sign(user_id, settings.refresh_secret, settings.refresh_ttl,
                 settings.algorithm, now or _utcnow())


def decode_access_token(token: str, settings: AuthSettings) -> int:
    """
    Returns the user id carried by a valid access token.

    Raises:
      AuthenticationError(TOKEN_EXPIRED) — signature fine, exp in the past.
        The client should call POST /auth/refresh.
      AuthenticationError(TOKEN_INVALID) — anything else.
    """
    try:
        return _decode(token, settings.access_secret, settings.algorithm)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(ErrorCode.TOKEN_EXPIRED, "Access token expired.")
    except jwt.InvalidTokenError:
        raise AuthenticationError(ErrorCode.TOKEN_INVALID, "Invalid token, please login.")


def purge_expired_refresh_tokens(session: Session, user_id: int | None = None) -> int:
    """Deletes refresh rows past expires_at (optionally for one user only)."""
    stmt = delete(RefreshToken).where(RefreshToken.expires_at <= _utcnow())
    if user_id is not None:
        stmt = stmt.where(RefreshToken.user_id == user_id)
    result = session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount or 0


def store_refresh_token(
        user_id: int,
        refresh_token: str,
        settings: AuthSettings,
        session: Session,
        now: datetime | None = None,
) -> RefreshToken:
    """
    Persists a refresh token. Under the single-session policy every existing
    row of the user is deleted first; otherwise only expired rows are purged.
    """
    if settings.single_session_per_user:
        session.execute(
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
    else:
        purge_expired_refresh_tokens(session, user_id=user_id)

    record = RefreshToken(
        user_id=user_id,
        token=refresh_token,
        expires_at=(now or _utcnow()) + settings.refresh_ttl,
    )
    session.add(record)
    session.flush()
    return record


def issue_token_pair(user_id: int, session: Session, settings: AuthSettings) -> TokenPair:
    """Mints an access + refresh token for the user and stores the refresh one."""
    now = _utcnow()
    pair = TokenPair(
        access_token=create_access_token(user_id, settings, now),
        refresh_token=create_refresh_token(user_id, settings, now),
    )
    store_refresh_token(user_id, pair.refresh_token, settings, session, now)
    logger.debug("Issued token pair for user %s", user_id)
    return pair


# ── Public service functions ───────────────────────────────────────────────

def register_user(data: dict, session: Session, settings: AuthSettings) -> tuple[dict, TokenPair]:
    """
    Creates a customer account and issues a token pair.

    Raises:
      InvalidInputError(DUPLICATE_EMAIL, 400) — email already registered.
        No row is created.

    Returns: (user dict without password, TokenPair)
    """
    existing = session.execute(
        select(User.id).where(User.email == data["email"])
    ).scalar_one_or_none()
    if existing is not None:
        raise InvalidInputError(
            ErrorCode.DUPLICATE_EMAIL,
            "User already exists.",
            field="email",
        )

    user = User(
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"], settings.bcrypt_rounds),
        phone=data.get("phone"),
        address=data.get("address"),
    )
    session.add(user)
    session.flush()  # populate user.id before creating the refresh row

    tokens = issue_token_pair(user.id, session, settings)
    return serialize_user(user), tokens


def login_user(
        email: str,
        password: str,
        session: Session,
        settings: AuthSettings,
) -> tuple[dict, TokenPair]:
    """
    Validates credentials and issues a new token pair.

    Raises:
      AuthenticationError(INVALID_CREDENTIALS, 401) — unknown email or wrong
      password. Same error for both to avoid account enumeration.
    """
    user = session.execute(
        select(User).where(User.email == email)
    ).scalar_one_or_none()

    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError(
            ErrorCode.INVALID_CREDENTIALS,
            "Invalid email or password.",
        )

    tokens = issue_token_pair(user.id, session, settings)
    return serialize_user(user), tokens


def refresh_access_token(raw_refresh_token: str, session: Session, settings: AuthSettings) -> str:
    """
    Exchanges a stored refresh token for a new access token.

    The refresh token itself is NOT rotated; it stays valid until it expires,
    is revoked by logout, or is superseded by a newer login.

    Raises:
      AuthenticationError(REFRESH_TOKEN_EXPIRED) — JWT exp has passed.
      AuthenticationError(REFRESH_TOKEN_INVALID) — bad signature, or no live
        stored row for (userId, token).
    """
    try:
        user_id = _decode(raw_refresh_token, settings.refresh_secret, settings.algorithm)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(
            ErrorCode.REFRESH_TOKEN_EXPIRED,
            "Refresh token expired, please login.",
        )
    except jwt.InvalidTokenError:
        raise AuthenticationError(ErrorCode.REFRESH_TOKEN_INVALID, "Invalid refresh token.")

    record = session.execute(
        select(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.token == raw_refresh_token,
        )
    ).scalar_one_or_none()

    if record is None or _as_utc(record.expires_at) <= _utcnow():
        raise AuthenticationError(ErrorCode.REFRESH_TOKEN_INVALID, "Invalid refresh token.")

    return create_access_token(user_id, settings)


def logout_user(raw_refresh_token: str | None, session: Session) -> bool:
    """
    Deletes the stored row matching the presented refresh token.
    No-op (returns False) when the token is absent or unknown.
    """
    if not raw_refresh_token:
        return False
    result = session.execute(
        delete(RefreshToken)
        .where(RefreshToken.token == raw_refresh_token)
        .execution_options(synchronize_session=False)
    )
    deleted = bool(result.rowcount)
    logger.debug("Logout removed refresh row: %s", deleted)
    return deleted


def get_user_or_404(user_id: int, session: Session) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, f"User {user_id} not found.")
    return user


def list_user_orders(user_id: int, session: Session) -> list[Order]:
    """A user's orders, newest first, with items and their products loaded."""
    stmt = (
        select(Order)
        .where(Order.user_id == user_id)
        .options(selectinload(Order.items).selectinload(OrderItem.product))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def get_profile(user_id: int, session: Session) -> dict:
    """
    Returns the caller's profile and their orders.

    Raises:
      NotFoundError(USER_NOT_FOUND, 404) — user removed after the token was issued.
    """
    user = get_user_or_404(user_id, session)
    orders = list_user_orders(user_id, session)
    return {
        "user": serialize_user(user),
        "orders": [serialize_order(o, include_user=False) for o in orders],
    }


def update_profile(user_id: int, data: dict, session: Session, settings: AuthSettings) -> dict:
    """
    Partially updates the caller's profile.

    Raises:
      NotFoundError(USER_NOT_FOUND, 404)
      InvalidInputError(DUPLICATE_EMAIL, 400)          — email used by someone else
      InvalidInputError(INVALID_CURRENT_PASSWORD, 400) — password change rejected
    """
    user = get_user_or_404(user_id, session)

    new_email = data.get("email")
    if new_email and new_email != user.email:
        taken = session.execute(
            select(User.id).where(User.email == new_email, User.id != user.id)
        ).scalar_one_or_none()
        if taken is not None:
            raise InvalidInputError(
                ErrorCode.DUPLICATE_EMAIL,
                "Email already in use.",
                field="email",
            )
        user.email = new_email

    if data.get("name"):
        user.name = data["name"]
    if "phone" in data:
        user.phone = data["phone"]
    if "address" in data:
        user.address = data["address"]

    if data.get("new_password"):
        if not verify_password(data.get("current_password", ""), user.password_hash):
            raise InvalidInputError(
                ErrorCode.INVALID_CURRENT_PASSWORD,
                "Current password is incorrect.",
                field="current_password",
            )
        user.password_hash = hash_password(data["new_password"], settings.bcrypt_rounds)

    session.flush()
    return serialize_user(user)
