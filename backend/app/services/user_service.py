"""
services/user_service.py — Admin view of customer accounts.

Layer rules:
  - No Flask imports. Read-only; nothing to flush.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models.user import User
from backend.app.services.auth_service import get_user_or_404, list_user_orders
from backend.app.services.query_utils import Page, ilike_any, paginate
from backend.app.services.serializers import serialize_order, serialize_user


def _newest_first(stmt):
    return stmt.order_by(User.created_at.desc(), User.id.desc())


def list_users(page: int, limit: int, session: Session) -> Page:
    return paginate(_newest_first(select(User)), page, limit, session)


def search_users(query: str, page: int, limit: int, session: Session) -> Page:
    stmt = select(User).where(ilike_any(query, User.name, User.email, User.phone))
    return paginate(_newest_first(stmt), page, limit, session)


def get_user_with_orders(user_id: int, session: Session) -> dict:
    """
    Raises:
      NotFoundError(USER_NOT_FOUND, 404)

    Returns: {"user": {...}, "orders": {"count": n, "data": [...]}}
    """
    user = get_user_or_404(user_id, session)
    orders = list_user_orders(user_id, session)
    return {
        "user": serialize_user(user),
        "orders": {
            "count": len(orders),
            "data": [serialize_order(o, include_user=False) for o in orders],
        },
    }
