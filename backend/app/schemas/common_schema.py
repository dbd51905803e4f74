"""
schemas/common_schema.py — Shared fields, validators and query-string schemas.

Request bodies arrive either as JSON or as multipart form data (when an image
is uploaded alongside). In form data every value is a string, so list-valued
fields (sizes, colors, order products) are sent as a JSON-encoded array.
JSONList accepts a real list, a JSON-encoded list, or a single plain string
(one repeated form field) and rejects everything else with one uniform
ValidationError — routes never parse these fields themselves.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

import json
from decimal import Decimal

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate

from backend.app.errors import ErrorCode


def validate_non_empty_after_trim(value: str) -> None:
    """Raises ValidationError if the string is blank or contains only whitespace."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


# Largest value a Numeric(10, 2) column holds.
MAX_PRICE = Decimal("99999999.99")


def validate_price(value: Decimal) -> None:
    """
    Prices are non-negative, at most MAX_PRICE, with at most 2 decimal places.
    More than 2 dp is rejected, never rounded.
    """
    if value < Decimal("0"):
        raise ValidationError("Price cannot be negative.")
    if value > MAX_PRICE:
        raise ValidationError(f"Price cannot exceed {MAX_PRICE}.")
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_PRICE_PRECISION)


class JSONList(fields.List):
    """
    A List field that also accepts its value JSON-encoded in a string.

        ["S", "M"]          → ["S", "M"]
        '["S", "M"]'        → ["S", "M"]
        "S"  (form field)   → ["S"]
        '{"a": 1}'          → ValidationError (INVALID_JSON_LIST)
    """

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("[") or stripped.startswith("{"):
                try:
                    value = json.loads(stripped)
                except json.JSONDecodeError as exc:
                    raise ValidationError(ErrorCode.INVALID_JSON_LIST) from exc
            elif stripped == "":
                value = []
            else:
                value = [stripped]
        if not isinstance(value, list):
            raise ValidationError(ErrorCode.INVALID_JSON_LIST)
        return super()._deserialize(value, attr, data, **kwargs)


class PaginationSchema(Schema):
    """Query string: ?page=1&limit=10 (1-based page)."""

    class Meta:
        # Endpoint-specific filters share the query string.
        unknown = EXCLUDE

    page = fields.Int(
        load_default=1,
        validate=validate.Range(min=1, error="page must be a positive integer."),
    )
    limit = fields.Int(
        load_default=10,
        validate=validate.Range(min=1, max=100, error="limit must be between 1 and 100."),
    )


def _validate_search_query(value: str) -> None:
    if not value.strip():
        raise ValidationError(ErrorCode.SEARCH_QUERY_REQUIRED)


class SearchSchema(PaginationSchema):
    """Query string: ?query=<text>&page=&limit="""

    query = fields.Str(
        required=True,
        validate=[validate.Length(max=200), _validate_search_query],
        error_messages={"required": ErrorCode.SEARCH_QUERY_REQUIRED},
    )
