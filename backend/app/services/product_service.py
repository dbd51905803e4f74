"""
services/product_service.py — Product business logic.

Rules enforced here:
  - INVALID_CATEGORY  (400) — category_id must reference an existing category
  - IMAGE_REQUIRED    (400) — a product always has a main image; checked before
                              any file or row is written
  - TOO_MANY_IMAGES   (400) — at most MAX_SUB_IMAGES sub-images per product
  - PRODUCT_NOT_FOUND / IMAGE_NOT_FOUND (404)

Image handling:
  - New files are written through the caller's UploadBatch before the row is
    flushed; the route commits inside the batch so a failed commit removes
    the files again.
  - Replaced or deleted files are NOT removed here. The functions return the
    obsolete storage paths and the route removes them after the commit.

Layer rules:
  - No Flask imports. Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload
from werkzeug.datastructures import FileStorage

from backend.app.errors import ErrorCode, InvalidInputError, NotFoundError
from backend.app.models.category import Category
from backend.app.models.order import OrderItem
from backend.app.models.product import Product, ProductImage
from backend.app.services.image_storage import UploadBatch
from backend.app.services.query_utils import Page, ilike_any, paginate

PRODUCT_IMAGE_FOLDER = "products"
_CENT = Decimal("0.01")


def _with_relations(stmt):
    return stmt.options(selectinload(Product.category), selectinload(Product.images))


def get_product_or_404(product_id: int, session: Session) -> Product:
    product = session.execute(
        _with_relations(select(Product).where(Product.id == product_id))
    ).scalar_one_or_none()
    if product is None:
        raise NotFoundError(ErrorCode.PRODUCT_NOT_FOUND, f"Product {product_id} not found.")
    return product


def _require_category(category_id: int, session: Session) -> None:
    if session.get(Category, category_id) is None:
        raise InvalidInputError(
            ErrorCode.INVALID_CATEGORY,
            f"Category {category_id} does not exist.",
            field="category_id",
        )


def _check_sub_image_count(count: int, max_sub_images: int) -> None:
    if count > max_sub_images:
        raise InvalidInputError(
            ErrorCode.TOO_MANY_IMAGES,
            f"A product can have at most {max_sub_images} sub-images.",
            field="sub_images",
        )


def create_product(
        data: dict,
        main_image: FileStorage | None,
        sub_images: list[FileStorage],
        uploads: UploadBatch,
        session: Session,
        max_sub_images: int = 10,
) -> Product:
    """
    Creates a product with its images.

    Validation that needs no I/O runs first, so a rejected request never
    leaves a file on disk.
    """
    if main_image is None or not main_image.filename:
        raise InvalidInputError(
            ErrorCode.IMAGE_REQUIRED,
            "Main image is required.",
            field="main_image",
        )
    _check_sub_image_count(len(sub_images), max_sub_images)
    _require_category(data["category_id"], session)

    main_path = uploads.save(main_image, PRODUCT_IMAGE_FOLDER)
    sub_paths = [uploads.save(f, PRODUCT_IMAGE_FOLDER) for f in sub_images]

    product = Product(
        name=data["name"].strip(),
        name_ar=data["name_ar"].strip(),
        description=data["description"],
        description_ar=data["description_ar"],
        category_id=data["category_id"],
        price=data["price"].quantize(_CENT),
        sizes=data.get("sizes", []),
        colors=data.get("colors", []),
        is_active=data.get("is_active", True),
        main_image=main_path,
        images=[ProductImage(path=p, position=i) for i, p in enumerate(sub_paths)],
    )
    session.add(product)
    session.flush()
    return get_product_or_404(product.id, session)


def list_products(
        page: int,
        limit: int,
        session: Session,
        category_id: int | None = None,
        is_active: bool | None = None,
) -> Page:
    stmt = select(Product)
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if is_active is not None:
        stmt = stmt.where(Product.is_active == is_active)
    stmt = _with_relations(stmt.order_by(Product.created_at.desc(), Product.id.desc()))
    return paginate(stmt, page, limit, session)


def search_products(query: str, page: int, limit: int, session: Session) -> Page:
    stmt = _with_relations(
        select(Product)
        .where(ilike_any(
            query,
            Product.name,
            Product.name_ar,
            Product.description,
            Product.description_ar,
        ))
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return paginate(stmt, page, limit, session)


def update_product(
        product_id: int,
        data: dict,
        main_image: FileStorage | None,
        sub_images: list[FileStorage],
        uploads: UploadBatch,
        session: Session,
        max_sub_images: int = 10,
) -> tuple[Product, list[str]]:
    """
    Partially updates a product.

    Returns: (product, storage paths that became obsolete and should be
    removed once the change is committed)
    """
    product = get_product_or_404(product_id, session)
    obsolete: list[str] = []

    replace_sub_images = data.pop("replace_sub_images", False)
    kept = [] if (replace_sub_images and sub_images) else list(product.images)
    _check_sub_image_count(len(kept) + len(sub_images), max_sub_images)

    if "category_id" in data:
        _require_category(data["category_id"], session)

    for key in ("name", "name_ar"):
        if data.get(key):
            setattr(product, key, data[key].strip())
    for key in ("description", "description_ar", "category_id", "sizes", "colors", "is_active"):
        if key in data:
            setattr(product, key, data[key])
    if "price" in data:
        product.price = data["price"].quantize(_CENT)

    if main_image is not None and main_image.filename:
        new_main = uploads.save(main_image, PRODUCT_IMAGE_FOLDER)
        obsolete.append(product.main_image)
        product.main_image = new_main

    if sub_images:
        new_paths = [uploads.save(f, PRODUCT_IMAGE_FOLDER) for f in sub_images]
        if replace_sub_images:
            obsolete.extend(img.path for img in product.images)
            product.images.clear()
        start = len(product.images)
        for offset, path in enumerate(new_paths):
            product.images.append(ProductImage(path=path, position=start + offset))

    session.flush()
    return product, obsolete


def delete_product(product_id: int, session: Session) -> list[str]:
    """
    Deletes a product and its sub-image rows.
    Order lines keep their snapshot and lose the product reference.

    Returns: storage paths to remove after the commit.
    """
    product = get_product_or_404(product_id, session)
    paths = [product.main_image, *(img.path for img in product.images)]

    session.execute(
        update(OrderItem)
        .where(OrderItem.product_id == product.id)
        .values(product_id=None)
        .execution_options(synchronize_session=False)
    )
    session.delete(product)
    session.flush()
    return paths


def delete_sub_image(product_id: int, index: int, session: Session) -> tuple[Product, str]:
    """
    Removes the sub-image at `index` (0-based, in display order).

    Returns: (product, storage path to remove after the commit)
    """
    product = get_product_or_404(product_id, session)
    if index < 0 or index >= len(product.images):
        raise NotFoundError(
            ErrorCode.IMAGE_NOT_FOUND,
            f"Product {product_id} has no sub-image at index {index}.",
        )

    image = product.images.pop(index)
    for position, remaining in enumerate(product.images):
        remaining.position = position
    session.flush()
    return product, image.path
