"""
routes/users.py — Admin view of customer accounts.

Endpoints (url_prefix=/api/users, admin only):
  GET    /users                → 200  paginated, no password hashes
  GET    /users/search?query=  → 200  paginated
  GET    /users/:id/orders     → 200  user + {count, data}
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_admin, require_auth
from backend.app.routes.request_utils import query_args
from backend.app.schemas.common_schema import PaginationSchema, SearchSchema
from backend.app.services import user_service
from backend.app.services.serializers import serialize_user

users_bp = Blueprint("users", __name__)


@users_bp.route("/", methods=["GET"])
@require_auth
@require_admin
def list_users():
    args = PaginationSchema().load(query_args())
    page = user_service.list_users(args["page"], args["limit"], session=db.session)
    return jsonify({
        "success": True,
        "data": [serialize_user(u) for u in page.items],
        "meta": page.meta(),
    }), 200


@users_bp.route("/search", methods=["GET"])
@require_auth
@require_admin
def search_users():
    args = SearchSchema().load(query_args())
    page = user_service.search_users(
        args["query"], args["page"], args["limit"], session=db.session,
    )
    return jsonify({
        "success": True,
        "data": [serialize_user(u) for u in page.items],
        "meta": page.meta(),
    }), 200


@users_bp.route("/<int:user_id>/orders", methods=["GET"])
@require_auth
@require_admin
def get_user_orders(user_id: int):
    result = user_service.get_user_with_orders(user_id, session=db.session)
    return jsonify({"success": True, "data": result}), 200
