"""
services/order_service.py — Order business logic.

Rules enforced here:
  - IMAGE_REQUIRED    (400) — an order always carries a payment-proof image
  - INVALID_PRODUCT   (400) — every line must reference an existing, active product
  - TOTAL_MISMATCH    (400) — a client-supplied total must equal the server total
  - FORBIDDEN         (403) — customers may only read their own orders
  - ORDER_NOT_FOUND   (404)

Money:
  - Line prices are snapshotted from the catalog at creation time; the client
    never sets a price. total_amount = Σ price × quantity, computed in Decimal.

Layer rules:
  - No Flask imports. Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from werkzeug.datastructures import FileStorage

from backend.app.errors import (
    AuthorizationError,
    ErrorCode,
    InvalidInputError,
    NotFoundError,
)
from backend.app.models.order import Order, OrderItem, OrderStatus
from backend.app.models.product import Product
from backend.app.models.user import User
from backend.app.services.image_storage import UploadBatch
from backend.app.services.query_utils import Page, ilike_any, paginate

logger = logging.getLogger(__name__)

PAYMENT_IMAGE_FOLDER = "payments"


def _with_relations(stmt):
    return stmt.options(
        selectinload(Order.user),
        selectinload(Order.items).selectinload(OrderItem.product),
    )


def _newest_first(stmt):
    return stmt.order_by(Order.created_at.desc(), Order.id.desc())


def get_order_or_404(order_id: int, session: Session) -> Order:
    order = session.execute(
        _with_relations(select(Order).where(Order.id == order_id))
    ).scalar_one_or_none()
    if order is None:
        raise NotFoundError(ErrorCode.ORDER_NOT_FOUND, f"Order {order_id} not found.")
    return order


def create_order(
        user_id: int,
        data: dict,
        payment_image: FileStorage | None,
        uploads: UploadBatch,
        session: Session,
) -> Order:
    """
    Creates an order for `user_id`.

    Product lookups and the total check run before the payment image is
    written, so a rejected order leaves nothing on disk.
    """
    if payment_image is None or not payment_image.filename:
        raise InvalidInputError(
            ErrorCode.IMAGE_REQUIRED,
            "Payment image is required.",
            field="payment_image",
        )

    lines = data["products"]
    product_ids = [line["product_id"] for line in lines]
    products = {
        p.id: p
        for p in session.execute(
            select(Product).where(Product.id.in_(product_ids))
        ).scalars()
    }

    items: list[OrderItem] = []
    total = Decimal("0.00")
    for line in lines:
        product = products.get(line["product_id"])
        if product is None or not product.is_active:
            raise InvalidInputError(
                ErrorCode.INVALID_PRODUCT,
                f"Product {line['product_id']} does not exist or is not available.",
                field="products",
            )
        total += product.price * line["quantity"]
        items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=line["quantity"],
            price=product.price,
        ))

    client_total = data.get("total_amount")
    if client_total is not None and client_total != total:
        raise InvalidInputError(
            ErrorCode.TOTAL_MISMATCH,
            f"total_amount {client_total} does not match the order total {total}.",
            field="total_amount",
        )

    payment_path = uploads.save(payment_image, PAYMENT_IMAGE_FOLDER)

    order = Order(
        user_id=user_id,
        total_amount=total,
        status=OrderStatus.PENDING,
        payment_image=payment_path,
        items=items,
    )
    session.add(order)
    session.flush()
    logger.info("Order %s created by user %s, total %s", order.id, user_id, total)
    return get_order_or_404(order.id, session)


def list_orders(page: int, limit: int, session: Session) -> Page:
    stmt = _newest_first(_with_relations(select(Order)))
    return paginate(stmt, page, limit, session)


def search_orders(
        page: int,
        limit: int,
        session: Session,
        query: str | None = None,
        status: str | None = None,
) -> Page:
    """Matches the customer's name, email or phone; optionally filters by status."""
    stmt = select(Order).join(Order.user)
    if query and query.strip():
        stmt = stmt.where(ilike_any(query, User.name, User.email, User.phone))
    if status:
        stmt = stmt.where(Order.status == OrderStatus(status))
    return paginate(_newest_first(_with_relations(stmt)), page, limit, session)


def get_order_for_user(order_id: int, user: User, session: Session) -> Order:
    """
    Raises:
      NotFoundError(ORDER_NOT_FOUND, 404)
      AuthorizationError(FORBIDDEN, 403) — caller is neither the owner nor an admin
    """
    order = get_order_or_404(order_id, session)
    if order.user_id != user.id and not user.is_admin:
        raise AuthorizationError(
            ErrorCode.FORBIDDEN,
            "You do not have access to this order.",
        )
    return order


def update_order_status(order_id: int, status: str, session: Session) -> Order:
    order = get_order_or_404(order_id, session)
    order.status = OrderStatus(status)
    session.flush()
    return order


def delete_order(order_id: int, session: Session) -> str:
    """
    Deletes an order and its lines.

    Returns: the payment image path, to remove after the commit.
    """
    order = get_order_or_404(order_id, session)
    payment_path = order.payment_image
    session.delete(order)
    session.flush()
    return payment_path
