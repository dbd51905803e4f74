"""
routes/products.py — Product route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Image writes and the commit happen inside one UploadBatch: if the service
or the commit raises, the files written for this request are removed before
the error reaches the global handler. Files made obsolete by an update or
delete are removed only after the commit succeeded.

Endpoints (url_prefix=/api/products):
  GET    /products                     → 200  public, filters + paginated
  GET    /products/search?query=       → 200  public, paginated
  GET    /products/:id                 → 200  public
  POST   /products                     → 201  admin, multipart
  PUT    /products/:id                 → 200  admin, multipart, partial
  DELETE /products/:id                 → 200  admin
  DELETE /products/:id/images/:index   → 200  admin, one sub-image
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_admin, require_auth
from backend.app.routes.request_utils import (
    query_args,
    request_payload,
    uploaded_file,
    uploaded_files,
)
from backend.app.schemas.catalog_schema import (
    CreateProductSchema,
    ProductFilterSchema,
    UpdateProductSchema,
)
from backend.app.schemas.common_schema import SearchSchema
from backend.app.services import product_service
from backend.app.services.image_storage import get_image_storage
from backend.app.services.serializers import serialize_product

products_bp = Blueprint("products", __name__)


@products_bp.route("/", methods=["GET"])
def list_products():
    args = ProductFilterSchema().load(query_args())
    page = product_service.list_products(
        args["page"],
        args["limit"],
        session=db.session,
        category_id=args["category_id"],
        is_active=args["is_active"],
    )
    return jsonify({
        "success": True,
        "data": [serialize_product(p) for p in page.items],
        "meta": page.meta(),
    }), 200


@products_bp.route("/search", methods=["GET"])
def search_products():
    args = SearchSchema().load(query_args())
    page = product_service.search_products(
        args["query"], args["page"], args["limit"], session=db.session,
    )
    return jsonify({
        "success": True,
        "data": [serialize_product(p) for p in page.items],
        "meta": page.meta(),
    }), 200


@products_bp.route("/<int:product_id>", methods=["GET"])
def get_product(product_id: int):
    product = product_service.get_product_or_404(product_id, session=db.session)
    return jsonify({"success": True, "data": serialize_product(product)}), 200


@products_bp.route("/", methods=["POST"])
@require_auth
@require_admin
def create_product():
    """POST /products — fields + main_image (required) + sub_images (optional, repeated)."""
    data = CreateProductSchema().load(request_payload())

    with get_image_storage().batch() as uploads:
        product = product_service.create_product(
            data,
            main_image=uploaded_file("main_image"),
            sub_images=uploaded_files("sub_images"),
            uploads=uploads,
            session=db.session,
            max_sub_images=current_app.config["MAX_SUB_IMAGES"],
        )
        db.session.commit()

    return jsonify({
        "success": True,
        "message": "Product created successfully.",
        "data": serialize_product(product),
    }), 201


@products_bp.route("/<int:product_id>", methods=["PUT"])
@require_auth
@require_admin
def update_product(product_id: int):
    data = UpdateProductSchema().load(request_payload())
    storage = get_image_storage()

    with storage.batch() as uploads:
        product, obsolete = product_service.update_product(
            product_id,
            data,
            main_image=uploaded_file("main_image"),
            sub_images=uploaded_files("sub_images"),
            uploads=uploads,
            session=db.session,
            max_sub_images=current_app.config["MAX_SUB_IMAGES"],
        )
        db.session.commit()

    storage.remove_many(obsolete)
    return jsonify({
        "success": True,
        "message": "Product updated successfully.",
        "data": serialize_product(product),
    }), 200


@products_bp.route("/<int:product_id>", methods=["DELETE"])
@require_auth
@require_admin
def delete_product(product_id: int):
    paths = product_service.delete_product(product_id, session=db.session)
    db.session.commit()
    get_image_storage().remove_many(paths)
    return jsonify({
        "success": True,
        "message": "Product deleted successfully.",
        "data": {"id": product_id},
    }), 200


@products_bp.route("/<int:product_id>/images/<int:index>", methods=["DELETE"])
@require_auth
@require_admin
def delete_sub_image(product_id: int, index: int):
    product, path = product_service.delete_sub_image(product_id, index, session=db.session)
    db.session.commit()
    get_image_storage().remove(path)
    return jsonify({
        "success": True,
        "message": "Image removed successfully.",
        "data": serialize_product(product),
    }), 200
