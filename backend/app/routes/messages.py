"""
routes/messages.py — Contact-form inbox handlers.

Endpoints (url_prefix=/api/messages):
  POST   /messages                 → 201  public
  GET    /messages                 → 200  admin, paginated, unread count in meta
  GET    /messages/search?query=   → 200  admin, paginated
  PATCH  /messages/:id/read        → 200  admin
  DELETE /messages/:id             → 200  admin
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_admin, require_auth
from backend.app.routes.request_utils import query_args, request_payload
from backend.app.schemas.common_schema import PaginationSchema, SearchSchema
from backend.app.schemas.message_schema import CreateMessageSchema
from backend.app.services import message_service
from backend.app.services.serializers import serialize_message

messages_bp = Blueprint("messages", __name__)


@messages_bp.route("/", methods=["POST"])
def create_message():
    data = CreateMessageSchema().load(request_payload())
    message = message_service.create_message(data, session=db.session)
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "Message sent successfully.",
        "data": serialize_message(message),
    }), 201


@messages_bp.route("/", methods=["GET"])
@require_auth
@require_admin
def list_messages():
    args = PaginationSchema().load(query_args())
    page = message_service.list_messages(args["page"], args["limit"], session=db.session)
    unread = message_service.count_unread(session=db.session)
    return jsonify({
        "success": True,
        "data": [serialize_message(m) for m in page.items],
        "meta": page.meta(unread=unread),
    }), 200


@messages_bp.route("/search", methods=["GET"])
@require_auth
@require_admin
def search_messages():
    args = SearchSchema().load(query_args())
    page = message_service.search_messages(
        args["query"], args["page"], args["limit"], session=db.session,
    )
    return jsonify({
        "success": True,
        "data": [serialize_message(m) for m in page.items],
        "meta": page.meta(),
    }), 200


@messages_bp.route("/<int:message_id>/read", methods=["PATCH"])
@require_auth
@require_admin
def mark_message_read(message_id: int):
    message = message_service.mark_read(message_id, session=db.session)
    db.session.commit()
    return jsonify({"success": True, "data": serialize_message(message)}), 200


@messages_bp.route("/<int:message_id>", methods=["DELETE"])
@require_auth
@require_admin
def delete_message(message_id: int):
    message_service.delete_message(message_id, session=db.session)
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "Message deleted successfully.",
        "data": {"id": message_id},
    }), 200
