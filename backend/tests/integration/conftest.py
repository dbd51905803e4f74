"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against the "testing" config: in-memory SQLite unless
    TEST_DATABASE_URL points at a real database.
  - The app is created once per session using create_app("testing") with a
    temporary UPLOAD_FOLDER, and all tables are created via db.create_all().
  - Between tests, all rows are deleted in FK-safe order and the upload
    folder is emptied, so tests are isolated.
  - Auth travels in cookies; every test client keeps its own cookie jar, so
    "logged in as X" is simply "use the client X signed up with".

Helper functions (not fixtures) are provided for common operations:
  - signup(client, ...)         → user dict (client now holds both cookies)
  - login(client, ...)          → user dict
  - promote_to_admin(app, id)   → flips the role in the database
  - cookie_header(resp, name)   → the Set-Cookie header for one cookie
  - make_category(client, ...)  → category dict (admin client)
  - make_product(client, ...)   → product dict (admin client)
  - place_order(client, ...)    → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import io
import json
import shutil

import pytest

from backend.app import create_app
from backend.app.extensions import db as _db
from backend.app.models.user import Role, User


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def upload_dir(tmp_path_factory):
    return tmp_path_factory.mktemp("uploads")


@pytest.fixture(scope="session")
def app(upload_dir):
    """
    Creates the Flask application in 'testing' mode once for the entire test session.
    """
    flask_app = create_app("testing", config_overrides={"UPLOAD_FOLDER": str(upload_dir)})

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.session.remove()
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app, upload_dir):
    """
    Deletes all rows and stored uploads between tests.

    Tables are emptied children-first (reverse of metadata dependency order).
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in reversed(_db.metadata.sorted_tables):
            _db.session.execute(table.delete())
        _db.session.commit()

    for child in upload_dir.iterdir():
        if child.is_dir():
            shutil.rmtree(child)
        else:
            child.unlink()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Anonymous test client. Each test gets a fresh cookie jar."""
    return app.test_client()


@pytest.fixture
def customer(app):
    """A signed-in customer client. The user dict is at client.user."""
    c = app.test_client()
    c.user = signup(c, name="Carol", email="carol@test.com")
    return c


@pytest.fixture
def admin(app):
    """A signed-in admin client. The user dict is at client.user."""
    c = app.test_client()
    c.user = signup(c, name="Admin", email="admin@test.com")
    promote_to_admin(app, c.user["id"])
    return c


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def signup(
    client,
    name: str = "Alice",
    email: str = "alice@test.com",
    password: str = "secret1",
    **extra,
) -> dict:
    """Signs up and returns the user dict. The client keeps both auth cookies."""
    resp = client.post(
        "/api/auth/signup",
        json={"name": name, "email": email, "password": password, **extra},
    )
    assert resp.status_code == 201, f"signup failed: {resp.get_json()}"
    return resp.get_json()["data"]["user"]


def login(client, email: str = "alice@test.com", password: str = "secret1") -> dict:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()["data"]["user"]


def promote_to_admin(app, user_id: int) -> None:
    with app.app_context():
        user = _db.session.get(User, user_id)
        user.role = Role.ADMIN
        _db.session.commit()


def cookie_header(resp, name: str) -> str | None:
    """Returns the raw Set-Cookie header for `name`, or None if not set."""
    for header in resp.headers.getlist("Set-Cookie"):
        if header.startswith(f"{name}="):
            return header
    return None


def cookie_value(resp, name: str) -> str | None:
    header = cookie_header(resp, name)
    if header is None:
        return None
    return header.split(";", 1)[0].split("=", 1)[1]


def image(filename: str = "photo.png", content_type: str = "image/png"):
    """A (stream, filename, content_type) tuple for multipart test uploads."""
    return (io.BytesIO(b"\x89PNG test image"), filename, content_type)


def make_category(client, name: str = "Shirts", name_ar: str = "قمصان", **extra) -> dict:
    resp = client.post("/api/categories/", json={"name": name, "name_ar": name_ar, **extra})
    assert resp.status_code == 201, f"make_category failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_product(
    client,
    category_id: int,
    name: str = "Linen Shirt",
    price: str = "10.00",
    sub_images: int = 0,
    **extra,
) -> dict:
    data = {
        "name": name,
        "name_ar": name + " ar",
        "description": f"{name} description",
        "description_ar": "وصف",
        "category_id": str(category_id),
        "price": price,
        "main_image": image(),
        **extra,
    }
    if sub_images:
        data["sub_images"] = [image(f"sub{i}.png") for i in range(sub_images)]
    resp = client.post("/api/products/", data=data, content_type="multipart/form-data")
    assert resp.status_code == 201, f"make_product failed: {resp.get_json()}"
    return resp.get_json()["data"]


def place_order(client, lines: list[dict], total_amount: str | None = None, with_image=True):
    data = {"products": json.dumps(lines)}
    if total_amount is not None:
        data["total_amount"] = total_amount
    if with_image:
        data["payment_image"] = image("receipt.jpg", "image/jpeg")
    return client.post("/api/orders/", data=data, content_type="multipart/form-data")


def stored_path(upload_dir, public_url: str):
    """Maps a /uploads/... URL back to the file on disk."""
    return upload_dir / public_url.removeprefix("/uploads/")
