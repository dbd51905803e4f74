"""
extensions.py — Flask extension singletons.

Creates SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without circular imports, then binds them to the app via
init_app() inside the factory in app/__init__.py.

    from backend.app.extensions import db, ma

Do not pass the app object directly to SQLAlchemy() or Marshmallow() at import
time — that would prevent building a separate app instance per test session.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance, registered on the app for the Flask integration.
#
# IMPORTANT — schema inheritance rule:
#   All request schemas (in app/schemas/) inherit from marshmallow.Schema
#   directly, NOT from ma.Schema. ma.Schema requires an active application
#   context, and the unit tests in tests/unit/ load schemas without one.
ma = Marshmallow()
