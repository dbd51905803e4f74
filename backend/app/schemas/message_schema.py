"""
schemas/message_schema.py — Contact-form message schema.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, post_load, validate

from backend.app.schemas.common_schema import validate_non_empty_after_trim


class CreateMessageSchema(Schema):
    """POST /messages — public contact form."""

    name = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=100), validate_non_empty_after_trim],
    )
    email = fields.Email(required=True, validate=validate.Length(max=255))
    phone = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=30))
    message = fields.Str(
        required=True,
        validate=[validate.Length(min=1, max=5000), validate_non_empty_after_trim],
    )

    @post_load
    def normalise(self, data: dict, **kwargs) -> dict:
        data["name"] = data["name"].strip()
        data["email"] = data["email"].strip().lower()
        data["message"] = data["message"].strip()
        return data
