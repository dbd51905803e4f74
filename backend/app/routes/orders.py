"""
routes/orders.py — Order route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/orders):
  POST   /orders                        → 201  auth, multipart with payment_image
  GET    /orders                        → 200  admin, paginated
  GET    /orders/search?query=&status=  → 200  admin, paginated
  GET    /orders/:id                    → 200  owner or admin
  PATCH  /orders/:id/status             → 200  admin
  DELETE /orders/:id                    → 200  admin
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_admin, require_auth
from backend.app.routes.request_utils import query_args, request_payload, uploaded_file
from backend.app.schemas.common_schema import PaginationSchema
from backend.app.schemas.order_schema import (
    CreateOrderSchema,
    OrderSearchSchema,
    UpdateOrderStatusSchema,
)
from backend.app.services import order_service
from backend.app.services.image_storage import get_image_storage
from backend.app.services.serializers import serialize_order

orders_bp = Blueprint("orders", __name__)


@orders_bp.route("/", methods=["POST"])
@require_auth
def create_order():
    """POST /orders — products (JSON array) + total_amount? + payment_image file."""
    data = CreateOrderSchema().load(request_payload())

    with get_image_storage().batch() as uploads:
        order = order_service.create_order(
            user_id=g.user_id,
            data=data,
            payment_image=uploaded_file("payment_image"),
            uploads=uploads,
            session=db.session,
        )
        db.session.commit()

    return jsonify({
        "success": True,
        "message": "Order placed successfully.",
        "data": serialize_order(order),
    }), 201


@orders_bp.route("/", methods=["GET"])
@require_auth
@require_admin
def list_orders():
    args = PaginationSchema().load(query_args())
    page = order_service.list_orders(args["page"], args["limit"], session=db.session)
    return jsonify({
        "success": True,
        "data": [serialize_order(o) for o in page.items],
        "meta": page.meta(),
    }), 200


@orders_bp.route("/search", methods=["GET"])
@require_auth
@require_admin
def search_orders():
    args = OrderSearchSchema().load(query_args())
    page = order_service.search_orders(
        args["page"],
        args["limit"],
        session=db.session,
        query=args["query"],
        status=args["status"],
    )
    return jsonify({
        "success": True,
        "data": [serialize_order(o) for o in page.items],
        "meta": page.meta(),
    }), 200


@orders_bp.route("/<int:order_id>", methods=["GET"])
@require_auth
def get_order(order_id: int):
    order = order_service.get_order_for_user(order_id, g.current_user, session=db.session)
    return jsonify({"success": True, "data": serialize_order(order)}), 200


@orders_bp.route("/<int:order_id>/status", methods=["PATCH"])
@require_auth
@require_admin
def update_order_status(order_id: int):
    data = UpdateOrderStatusSchema().load(request_payload())
    order = order_service.update_order_status(order_id, data["status"], session=db.session)
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "Order status updated.",
        "data": serialize_order(order),
    }), 200


@orders_bp.route("/<int:order_id>", methods=["DELETE"])
@require_auth
@require_admin
def delete_order(order_id: int):
    payment_path = order_service.delete_order(order_id, session=db.session)
    db.session.commit()
    get_image_storage().remove(payment_path)
    return jsonify({
        "success": True,
        "message": "Order deleted successfully.",
        "data": {"id": order_id},
    }), 200
