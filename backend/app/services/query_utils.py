"""
services/query_utils.py — Pagination and substring-search helpers.

Layer rules:
  - No Flask imports. Pure SQLAlchemy on a session parameter.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

_LIKE_ESCAPE = "\\"


@dataclass
class Page:
    items: list[Any]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def meta(self, **extra) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
            "count": len(self.items),
            **extra,
        }


def paginate(stmt: Select, page: int, limit: int, session: Session) -> Page:
    """
    Runs `stmt` for one 1-based page and counts the full result set.

    `stmt` must already carry its ORDER BY; the count query strips it.
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = session.execute(count_stmt).scalar_one()

    rows = session.execute(
        stmt.offset((page - 1) * limit).limit(limit)
    ).scalars().unique().all()

    return Page(items=list(rows), page=page, limit=limit, total=total)


def contains_pattern(term: str) -> str:
    """
    Builds a LIKE pattern matching `term` as a literal substring.
    %, _ and the escape character in user input match themselves.
    """
    escaped = (
        term.strip()
        .replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def ilike_any(term: str, *columns):
    """Case-insensitive substring match of `term` against any of `columns`."""
    pattern = contains_pattern(term)
    return or_(*(column.ilike(pattern, escape=_LIKE_ESCAPE) for column in columns))
