"""
errors.py — AppError base class, error taxonomy and error code registry.

Every error returned by the API uses a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (forbidden).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "success": False,
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return payload

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Taxonomy ───────────────────────────────────────────────────────────────
# Each subclass pins the HTTP status so call sites only pick a code + message.

class InvalidInputError(AppError):
    """Missing, malformed or duplicate input (400)."""

    def __init__(self, code: str, message: str, field: str | None = None) -> None:
        super().__init__(code, message, 400, field)


class AuthenticationError(AppError):
    """Missing, invalid or expired credentials (401)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 401)


class AuthorizationError(AppError):
    """Authenticated but not allowed (403)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 403)


class NotFoundError(AppError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 404)


class ConflictError(AppError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 409)


class InternalError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.INTERNAL_ERROR, message, 500)


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_PRICE_PRECISION    = "INVALID_PRICE_PRECISION"
    INVALID_JSON_LIST          = "INVALID_JSON_LIST"
    SEARCH_QUERY_REQUIRED      = "SEARCH_QUERY_REQUIRED"
    IMAGE_REQUIRED             = "IMAGE_REQUIRED"
    UNSUPPORTED_IMAGE          = "UNSUPPORTED_IMAGE"
    TOO_MANY_IMAGES            = "TOO_MANY_IMAGES"
    INVALID_CATEGORY           = "INVALID_CATEGORY"
    INVALID_PRODUCT            = "INVALID_PRODUCT"
    INVALID_STATUS             = "INVALID_STATUS"
    TOTAL_MISMATCH             = "TOTAL_MISMATCH"
    INVALID_CURRENT_PASSWORD   = "INVALID_CURRENT_PASSWORD"
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    DUPLICATE_CATEGORY         = "DUPLICATE_CATEGORY"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    CATEGORY_IN_USE            = "CATEGORY_IN_USE"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    NOT_FOUND                  = "NOT_FOUND"
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    CATEGORY_NOT_FOUND         = "CATEGORY_NOT_FOUND"
    PRODUCT_NOT_FOUND          = "PRODUCT_NOT_FOUND"
    IMAGE_NOT_FOUND            = "IMAGE_NOT_FOUND"
    ORDER_NOT_FOUND            = "ORDER_NOT_FOUND"
    MESSAGE_NOT_FOUND          = "MESSAGE_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"    # 401
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    ACCOUNT_NOT_FOUND          = "ACCOUNT_NOT_FOUND"      # 401
    REFRESH_TOKEN_MISSING      = "REFRESH_TOKEN_MISSING"  # 401
    REFRESH_TOKEN_INVALID      = "REFRESH_TOKEN_INVALID"  # 401
    REFRESH_TOKEN_EXPIRED      = "REFRESH_TOKEN_EXPIRED"  # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── Transport Errors ───────────────────────────────────────────────────
    PAYLOAD_TOO_LARGE          = "PAYLOAD_TOO_LARGE"      # 413

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
