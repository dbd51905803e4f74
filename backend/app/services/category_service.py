"""
services/category_service.py — Category business logic.

Rules enforced here (require DB lookups, so not in the schema):
  - DUPLICATE_CATEGORY (400) — name or name_ar already used by another category
  - CATEGORY_IN_USE    (409) — cannot delete a category that still has products
  - CATEGORY_NOT_FOUND (404)

Layer rules:
  - No Flask imports. Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from backend.app.errors import ConflictError, ErrorCode, InvalidInputError, NotFoundError
from backend.app.models.category import Category
from backend.app.models.product import Product
from backend.app.services.query_utils import Page, ilike_any, paginate


def get_category_or_404(category_id: int, session: Session) -> Category:
    category = session.get(Category, category_id)
    if category is None:
        raise NotFoundError(
            ErrorCode.CATEGORY_NOT_FOUND,
            f"Category {category_id} not found.",
        )
    return category


def _ensure_names_available(
        session: Session,
        name: str | None,
        name_ar: str | None,
        exclude_id: int | None = None,
) -> None:
    conditions = []
    if name:
        conditions.append(func.lower(Category.name) == name.lower())
    if name_ar:
        conditions.append(Category.name_ar == name_ar)
    if not conditions:
        return

    stmt = select(Category.id).where(or_(*conditions))
    if exclude_id is not None:
        stmt = stmt.where(Category.id != exclude_id)

    if session.execute(stmt.limit(1)).scalar_one_or_none() is not None:
        raise InvalidInputError(
            ErrorCode.DUPLICATE_CATEGORY,
            "Category with the same name already exists.",
            field="name",
        )


def create_category(data: dict, session: Session) -> Category:
    name = data["name"].strip()
    name_ar = data["name_ar"].strip()
    _ensure_names_available(session, name, name_ar)

    category = Category(
        name=name,
        name_ar=name_ar,
        description=data.get("description"),
        description_ar=data.get("description_ar"),
        is_active=data.get("is_active", True),
    )
    session.add(category)
    session.flush()
    return category


def list_categories(page: int, limit: int, session: Session) -> Page:
    stmt = select(Category).order_by(Category.created_at.desc(), Category.id.desc())
    return paginate(stmt, page, limit, session)


def search_categories(query: str, page: int, limit: int, session: Session) -> Page:
    stmt = (
        select(Category)
        .where(ilike_any(query, Category.name, Category.name_ar))
        .order_by(Category.created_at.desc(), Category.id.desc())
    )
    return paginate(stmt, page, limit, session)


def update_category(category_id: int, data: dict, session: Session) -> Category:
    category = get_category_or_404(category_id, session)

    name = data["name"].strip() if data.get("name") else None
    name_ar = data["name_ar"].strip() if data.get("name_ar") else None
    _ensure_names_available(session, name, name_ar, exclude_id=category.id)

    if name:
        category.name = name
    if name_ar:
        category.name_ar = name_ar
    for key in ("description", "description_ar", "is_active"):
        if key in data:
            setattr(category, key, data[key])

    session.flush()
    return category


def delete_category(category_id: int, session: Session) -> None:
    category = get_category_or_404(category_id, session)

    in_use = session.execute(
        select(func.count()).select_from(Product).where(Product.category_id == category.id)
    ).scalar_one()
    if in_use:
        raise ConflictError(
            ErrorCode.CATEGORY_IN_USE,
            f"Category {category_id} still has {in_use} product(s); "
            "move or delete them first.",
        )

    session.delete(category)
    session.flush()
