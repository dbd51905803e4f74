"""
models/product.py — Product and ProductImage table definitions.

Key design points:
  - `price` uses Numeric(10, 2) — never Float. Serialised as a string.
  - `main_image` and ProductImage.path hold storage paths relative to the
    upload folder (see services/image_storage.py), never absolute paths.
  - Sub-images are ordered by `position`; deleting a product removes its
    ProductImage rows (ORM cascade + ON DELETE CASCADE).
  - Order items keep a SET NULL reference plus a name snapshot, so deleting
    a product never rewrites order history.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        Index("idx_products_category_active", "category_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    name_ar: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    description_ar: Mapped[str] = mapped_column(Text, nullable=False)

    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=False,
    )

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    sizes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    colors: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    main_image: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    category: Mapped["Category"] = relationship(  # noqa: F821
        "Category",
        back_populates="products",
    )

    images: Mapped[list["ProductImage"]] = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.position",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Product id={self.id} name={self.name!r} price={self.price}>"


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id: Mapped[int] = mapped_column(primary_key=True)

    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    path: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped["Product"] = relationship(
        "Product",
        back_populates="images",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ProductImage id={self.id} product_id={self.product_id} path={self.path!r}>"
