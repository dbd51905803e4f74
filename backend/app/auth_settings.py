"""
auth_settings.py — Immutable token/cookie settings.

Built once by the app factory from the loaded Flask config and stored in
app.extensions["auth_settings"]. The token issuer (services/auth_service.py)
and the session guard (middleware/auth_middleware.py) receive this object
explicitly instead of reading secrets from the environment or app.config
at call time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask import Flask, current_app

_EXTENSION_KEY = "auth_settings"


@dataclass(frozen=True)
class AuthSettings:
    access_secret: str
    refresh_secret: str
    access_ttl: timedelta
    refresh_ttl: timedelta
    algorithm: str = "HS256"
    single_session_per_user: bool = True
    bcrypt_rounds: int = 12

    access_cookie: str = "accessToken"
    refresh_cookie: str = "refreshToken"
    cookie_secure: bool = False
    cookie_samesite: str = "Lax"

    @classmethod
    def from_config(cls, config) -> "AuthSettings":
        return cls(
            access_secret=config["ACCESS_TOKEN_SECRET"],
            refresh_secret=config["REFRESH_TOKEN_SECRET"],
            access_ttl=config["ACCESS_TOKEN_EXPIRES"],
            refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            single_session_per_user=bool(config.get("SINGLE_SESSION_PER_USER", True)),
            bcrypt_rounds=int(config.get("BCRYPT_LOG_ROUNDS", 12)),
            access_cookie=config.get("ACCESS_COOKIE_NAME", "accessToken"),
            refresh_cookie=config.get("REFRESH_COOKIE_NAME", "refreshToken"),
            cookie_secure=bool(config.get("COOKIE_SECURE", False)),
            cookie_samesite=config.get("COOKIE_SAMESITE", "Lax"),
        )


def init_auth_settings(app: Flask) -> AuthSettings:
    settings = AuthSettings.from_config(app.config)
    app.extensions[_EXTENSION_KEY] = settings
    return settings


def get_auth_settings() -> AuthSettings:
    """Returns the settings registered on the current app."""
    return current_app.extensions[_EXTENSION_KEY]
