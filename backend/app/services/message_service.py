"""
services/message_service.py — Contact-form inbox.

Layer rules:
  - No Flask imports. Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.errors import ErrorCode, NotFoundError
from backend.app.models.message import Message
from backend.app.services.query_utils import Page, ilike_any, paginate


def _newest_first(stmt):
    return stmt.order_by(Message.created_at.desc(), Message.id.desc())


def get_message_or_404(message_id: int, session: Session) -> Message:
    message = session.get(Message, message_id)
    if message is None:
        raise NotFoundError(ErrorCode.MESSAGE_NOT_FOUND, f"Message {message_id} not found.")
    return message


def create_message(data: dict, session: Session) -> Message:
    message = Message(
        name=data["name"],
        email=data["email"],
        phone=data.get("phone"),
        message=data["message"],
    )
    session.add(message)
    session.flush()
    return message


def count_unread(session: Session) -> int:
    return session.execute(
        select(func.count()).select_from(Message).where(Message.is_read.is_(False))
    ).scalar_one()


def list_messages(page: int, limit: int, session: Session) -> Page:
    return paginate(_newest_first(select(Message)), page, limit, session)


def search_messages(query: str, page: int, limit: int, session: Session) -> Page:
    stmt = select(Message).where(
        ilike_any(query, Message.name, Message.email, Message.phone)
    )
    return paginate(_newest_first(stmt), page, limit, session)


def mark_read(message_id: int, session: Session) -> Message:
    message = get_message_or_404(message_id, session)
    message.is_read = True
    session.flush()
    return message


def delete_message(message_id: int, session: Session) -> None:
    message = get_message_or_404(message_id, session)
    session.delete(message)
    session.flush()
