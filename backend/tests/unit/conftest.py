"""
tests/unit/conftest.py — Shared setup for the DB-free unit tests.

Relationships between models are declared by class name, so every model
module must be imported before the first query is built. create_app() does
this for the integration suite; unit tests never build an app.
"""

from backend.app.models import (  # noqa: F401
    category,
    message,
    order,
    product,
    refresh_token,
    user,
)
