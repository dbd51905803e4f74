"""
routes/categories.py — Category route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/categories):
  GET    /categories               → 200  public, paginated
  GET    /categories/search?query= → 200  public, paginated
  GET    /categories/:id           → 200  public
  POST   /categories               → 201  admin
  PUT    /categories/:id           → 200  admin
  DELETE /categories/:id           → 200  admin
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_admin, require_auth
from backend.app.routes.request_utils import query_args, request_payload
from backend.app.schemas.catalog_schema import CreateCategorySchema, UpdateCategorySchema
from backend.app.schemas.common_schema import PaginationSchema, SearchSchema
from backend.app.services import category_service
from backend.app.services.serializers import serialize_category

categories_bp = Blueprint("categories", __name__)


@categories_bp.route("/", methods=["GET"])
def list_categories():
    args = PaginationSchema().load(query_args())
    page = category_service.list_categories(args["page"], args["limit"], session=db.session)
    return jsonify({
        "success": True,
        "data": [serialize_category(c) for c in page.items],
        "meta": page.meta(),
    }), 200


@categories_bp.route("/search", methods=["GET"])
def search_categories():
    args = SearchSchema().load(query_args())
    page = category_service.search_categories(
        args["query"], args["page"], args["limit"], session=db.session,
    )
    return jsonify({
        "success": True,
        "data": [serialize_category(c) for c in page.items],
        "meta": page.meta(),
    }), 200


@categories_bp.route("/<int:category_id>", methods=["GET"])
def get_category(category_id: int):
    category = category_service.get_category_or_404(category_id, session=db.session)
    return jsonify({"success": True, "data": serialize_category(category)}), 200


@categories_bp.route("/", methods=["POST"])
@require_auth
@require_admin
def create_category():
    data = CreateCategorySchema().load(request_payload())
    category = category_service.create_category(data, session=db.session)
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "Category created successfully.",
        "data": serialize_category(category),
    }), 201


@categories_bp.route("/<int:category_id>", methods=["PUT"])
@require_auth
@require_admin
def update_category(category_id: int):
    data = UpdateCategorySchema().load(request_payload())
    category = category_service.update_category(category_id, data, session=db.session)
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "Category updated successfully.",
        "data": serialize_category(category),
    }), 200


@categories_bp.route("/<int:category_id>", methods=["DELETE"])
@require_auth
@require_admin
def delete_category(category_id: int):
    category_service.delete_category(category_id, session=db.session)
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "Category deleted successfully.",
        "data": {"id": category_id},
    }), 200
