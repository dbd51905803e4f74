"""
schemas/order_schema.py — Marshmallow schemas for order endpoints.

Validation responsibility:
  - This file: line-item shape, quantity range, duplicate product lines,
    status enum values, JSON-encoded `products` in multipart bodies.
  - services/order_service.py: INVALID_PRODUCT (product must exist and be
    active), TOTAL_MISMATCH (requires catalog prices), ownership (403).

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates

from backend.app.errors import ErrorCode
from backend.app.models.order import OrderStatus
from backend.app.schemas.common_schema import JSONList, PaginationSchema, validate_price

_STATUS_VALUES = [s.value for s in OrderStatus]


class OrderLineSchema(Schema):
    """One entry of the `products` array."""

    product_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="product_id must be a positive integer."),
    )
    quantity = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, max=1000, error="quantity must be between 1 and 1000."),
    )


class CreateOrderSchema(Schema):
    """
    POST /orders (multipart)

    products     : JSON-encoded array of {product_id, quantity}; non-empty
    total_amount : optional; when present must equal the server-computed total
    The payment_image file is handled by the route, not here.
    """

    products = JSONList(
        fields.Nested(OrderLineSchema),
        required=True,
        validate=validate.Length(min=1, error="products must be a non-empty array."),
    )
    total_amount = fields.Decimal(load_default=None, allow_none=True, validate=validate_price)

    @validates("products")
    def validate_unique_products(self, value: list[dict], **kwargs) -> None:
        ids = [line["product_id"] for line in value]
        if len(ids) != len(set(ids)):
            raise ValidationError("Each product may appear only once; adjust its quantity instead.")


class UpdateOrderStatusSchema(Schema):
    """PATCH /orders/:id/status"""

    status = fields.Str(
        required=True,
        validate=validate.OneOf(_STATUS_VALUES, error=ErrorCode.INVALID_STATUS),
    )


class OrderSearchSchema(PaginationSchema):
    """GET /orders/search?query=&status=  — both filters optional."""

    query = fields.Str(load_default=None, validate=validate.Length(max=200))
    status = fields.Str(
        load_default=None,
        validate=validate.OneOf(_STATUS_VALUES, error=ErrorCode.INVALID_STATUS),
    )
