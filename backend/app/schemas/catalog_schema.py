"""
schemas/catalog_schema.py — Marshmallow schemas for categories and products.

Validation responsibility:
  - This file: field types, lengths, price precision, list encodings.
  - services/category_service.py: DUPLICATE_CATEGORY, CATEGORY_IN_USE.
  - services/product_service.py: INVALID_CATEGORY (category must exist),
    IMAGE_REQUIRED (file presence is not part of the form body).

Product create/update arrive as multipart form data, so every scalar is a
string on the wire; marshmallow's Int/Decimal/Boolean fields coerce them.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from backend.app.schemas.common_schema import (
    JSONList,
    PaginationSchema,
    validate_non_empty_after_trim,
    validate_price,
)

_NAME = [validate.Length(min=1, max=100), validate_non_empty_after_trim]
_PRODUCT_NAME = [validate.Length(min=1, max=200), validate_non_empty_after_trim]
_VARIANT = fields.Str(validate=validate.Length(min=1, max=50))


# ── Categories ─────────────────────────────────────────────────────────────

class CreateCategorySchema(Schema):
    """POST /categories — both English and Arabic names are required."""

    name = fields.Str(required=True, validate=_NAME)
    name_ar = fields.Str(required=True, validate=_NAME)
    description = fields.Str(load_default=None, allow_none=True)
    description_ar = fields.Str(load_default=None, allow_none=True)
    is_active = fields.Bool(load_default=True)


class UpdateCategorySchema(Schema):
    """PUT /categories/:id — partial update."""

    name = fields.Str(validate=_NAME)
    name_ar = fields.Str(validate=_NAME)
    description = fields.Str(allow_none=True)
    description_ar = fields.Str(allow_none=True)
    is_active = fields.Bool()


# ── Products ───────────────────────────────────────────────────────────────

class CreateProductSchema(Schema):
    """
    POST /products (multipart)

    sizes / colors: JSON-encoded array string, repeated form field, or array.
    The main_image / sub_images files are handled by the route, not here.
    """

    name = fields.Str(required=True, validate=_PRODUCT_NAME)
    name_ar = fields.Str(required=True, validate=_PRODUCT_NAME)
    description = fields.Str(required=True, validate=validate_non_empty_after_trim)
    description_ar = fields.Str(required=True, validate=validate_non_empty_after_trim)
    category_id = fields.Int(
        required=True,
        validate=validate.Range(min=1, error="category_id must be a positive integer."),
    )
    price = fields.Decimal(required=True, validate=validate_price)
    sizes = JSONList(_VARIANT, load_default=list)
    colors = JSONList(_VARIANT, load_default=list)
    is_active = fields.Bool(load_default=True)


class UpdateProductSchema(Schema):
    """
    PUT /products/:id (multipart) — partial update.

    replace_sub_images=true drops the existing sub-images before the uploaded
    ones are attached; otherwise uploads are appended.
    """

    name = fields.Str(validate=_PRODUCT_NAME)
    name_ar = fields.Str(validate=_PRODUCT_NAME)
    description = fields.Str(validate=validate_non_empty_after_trim)
    description_ar = fields.Str(validate=validate_non_empty_after_trim)
    category_id = fields.Int(validate=validate.Range(min=1))
    price = fields.Decimal(validate=validate_price)
    sizes = JSONList(_VARIANT)
    colors = JSONList(_VARIANT)
    is_active = fields.Bool()
    replace_sub_images = fields.Bool(load_default=False)


class ProductFilterSchema(PaginationSchema):
    """GET /products?category_id=&is_active=&page=&limit="""

    category_id = fields.Int(load_default=None, validate=validate.Range(min=1))
    is_active = fields.Bool(load_default=None)
