"""
services/serializers.py — ORM object → plain dict converters.

Pure data shaping: no DB access, no business logic.
Money stays Decimal here; the app's JSON provider emits it as a string.
Password hashes are never part of any output.
"""

from __future__ import annotations

from datetime import datetime

from backend.app.models.category import Category
from backend.app.models.message import Message
from backend.app.models.order import Order, OrderItem
from backend.app.models.product import Product
from backend.app.models.user import User
from backend.app.services.image_storage import public_url


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "address": user.address,
        "role": user.role.value,
        "created_at": _iso(user.created_at),
    }


def serialize_category(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "name_ar": category.name_ar,
        "description": category.description,
        "description_ar": category.description_ar,
        "is_active": category.is_active,
        "created_at": _iso(category.created_at),
        "updated_at": _iso(category.updated_at),
    }


def serialize_product(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "name_ar": product.name_ar,
        "description": product.description,
        "description_ar": product.description_ar,
        "category": (
            {"id": product.category.id, "name": product.category.name}
            if product.category is not None
            else None
        ),
        "price": product.price,
        "sizes": list(product.sizes or []),
        "colors": list(product.colors or []),
        "main_image": public_url(product.main_image),
        "sub_images": [public_url(img.path) for img in product.images],
        "is_active": product.is_active,
        "created_at": _iso(product.created_at),
        "updated_at": _iso(product.updated_at),
    }


def _serialize_order_item(item: OrderItem) -> dict:
    product = item.product
    return {
        "product_id": item.product_id,
        "name": item.product_name,
        "main_image": public_url(product.main_image) if product is not None else None,
        "quantity": item.quantity,
        "price": item.price,
    }


def serialize_order(order: Order, include_user: bool = True) -> dict:
    result = {
        "id": order.id,
        "user_id": order.user_id,
        "products": [_serialize_order_item(item) for item in order.items],
        "total_amount": order.total_amount,
        "status": order.status.value,
        "payment_image": public_url(order.payment_image),
        "created_at": _iso(order.created_at),
        "updated_at": _iso(order.updated_at),
    }
    if include_user and order.user is not None:
        result["user"] = {
            "id": order.user.id,
            "name": order.user.name,
            "email": order.user.email,
            "phone": order.user.phone,
            "address": order.user.address,
        }
    return result


def serialize_message(message: Message) -> dict:
    return {
        "id": message.id,
        "name": message.name,
        "email": message.email,
        "phone": message.phone,
        "message": message.message,
        "is_read": message.is_read,
        "created_at": _iso(message.created_at),
    }
