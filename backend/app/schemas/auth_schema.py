"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: field types, lengths, formats.
  - services/auth_service.py: DUPLICATE_EMAIL and password checks
    (cross-entity: require a DB lookup — not a schema concern).

Emails are trimmed and lower-cased on load so uniqueness is case-insensitive.

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    post_load,
    validate,
    validates_schema,
)

from backend.app.schemas.common_schema import validate_non_empty_after_trim

_MIN_PASSWORD_LENGTH = 6


def _normalise_email(data: dict) -> dict:
    if data.get("email"):
        data["email"] = data["email"].strip().lower()
    return data


class SignupSchema(Schema):
    """
    POST /auth/signup

    Field rules:
      name     : required, 1–100 chars, not blank
      email    : valid email format
      password : min 6 chars
      phone    : optional, max 30 chars
      address  : optional, max 255 chars
    """

    name = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=100), validate_non_empty_after_trim],
    )

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    password = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(
            min=_MIN_PASSWORD_LENGTH,
            max=128,
            error="Password must be at least 6 characters long.",
        ),
    )

    phone = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=30))
    address = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=255))

    @post_load
    def normalise(self, data: dict, **kwargs) -> dict:
        data["name"] = data["name"].strip()
        return _normalise_email(data)


class LoginSchema(Schema):
    """
    POST /auth/login

    Credential correctness is checked in auth_service.py
    (INVALID_CREDENTIALS, 401).
    """

    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)

    @post_load
    def normalise(self, data: dict, **kwargs) -> dict:
        return _normalise_email(data)


class UpdateProfileSchema(Schema):
    """
    PUT /auth/profile — every field optional.

    Changing the password requires both current_password and new_password.
    """

    name = fields.Str(validate=[validate.Length(min=1, max=100), validate_non_empty_after_trim])
    email = fields.Email(validate=validate.Length(max=255))
    phone = fields.Str(allow_none=True, validate=validate.Length(max=30))
    address = fields.Str(allow_none=True, validate=validate.Length(max=255))
    current_password = fields.Str(load_only=True)
    new_password = fields.Str(
        load_only=True,
        validate=validate.Length(
            min=_MIN_PASSWORD_LENGTH,
            max=128,
            error="Password must be at least 6 characters long.",
        ),
    )

    @validates_schema
    def validate_password_pair(self, data: dict, **kwargs) -> None:
        if "new_password" in data and not data.get("current_password"):
            raise ValidationError(
                "current_password is required to set a new password.",
                field_name="current_password",
            )

    @post_load
    def normalise(self, data: dict, **kwargs) -> dict:
        if "name" in data:
            data["name"] = data["name"].strip()
        return _normalise_email(data)
