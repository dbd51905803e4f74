"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic and the flask CLI to load the app without serving it

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Initialise extensions (SQLAlchemy, Marshmallow), AuthSettings and the
     image store
  3. Register all route blueprints under /api and serve /uploads
  4. Register global error handlers (AppError → JSON, Exception → 500)
  5. Register a custom JSON provider to serialise Decimal as string
  6. Register the admin CLI commands

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here — the import side-effect is sufficient.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import Flask, jsonify, request, send_from_directory
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException, NotFound, RequestEntityTooLarge

from backend.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.
# Prices and totals are serialised as strings to preserve precision.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development", config_overrides: dict | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
        config_overrides: Extra config values applied after the config class
                     (tests use it for a temporary UPLOAD_FOLDER).

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)
    if config_overrides:
        app.config.update(config_overrides)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("backend").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from backend.app.auth_settings import init_auth_settings
    from backend.app.extensions import db, ma
    from backend.app.services.image_storage import init_image_storage

    db.init_app(app)
    ma.init_app(app)
    init_auth_settings(app)
    init_image_storage(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from backend.app.models import (  # noqa: F401
            category,
            message,
            order,
            product,
            refresh_token,
            user,
        )

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)
    _register_uploads(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    from backend.app.cli import register_cli
    register_cli(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "/" and "/<int:id>").
    """
    from backend.app.routes.auth import auth_bp
    from backend.app.routes.categories import categories_bp
    from backend.app.routes.messages import messages_bp
    from backend.app.routes.orders import orders_bp
    from backend.app.routes.products import products_bp
    from backend.app.routes.users import users_bp

    app.register_blueprint(auth_bp,       url_prefix="/api/auth")
    app.register_blueprint(categories_bp, url_prefix="/api/categories")
    app.register_blueprint(products_bp,   url_prefix="/api/products")
    app.register_blueprint(orders_bp,     url_prefix="/api/orders")
    app.register_blueprint(messages_bp,   url_prefix="/api/messages")
    app.register_blueprint(users_bp,      url_prefix="/api/users")


def _register_uploads(app: Flask) -> None:
    """Serves stored images under /uploads/<folder>/<file>."""

    @app.route("/uploads/<path:filename>")
    def uploaded_image(filename: str):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD (or the registered code) responses (400)
      413             → PAYLOAD_TOO_LARGE
      404             → NOT_FOUND for unknown URLs
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server. The exception text is added as
    `detail` only when DEBUG is on.
    """
    from backend.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.

        Routes never catch AppError — they let it propagate here.
        """
        if error.http_status >= 500:
            app.logger.error("%r on %s %s", error, request.method, request.path)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST error is returned. Nested errors (e.g. one order line)
        report a dotted field path such as "products.0.quantity".

        The error code from the ValidationError message is used directly if it
        matches a known ErrorCode constant; otherwise MISSING_FIELD or
        INVALID_FIELD is used.
        """
        field, raw_message = _first_validation_error(error.messages)
        known_codes = {v for k, v in vars(ErrorCode).items() if not k.startswith("_")}

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {"success": False, "code": code, "message": message}
        if field is not None:
            body["field"] = field
        return jsonify(body), 400

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error: RequestEntityTooLarge):
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        return jsonify({
            "success": False,
            "code": ErrorCode.PAYLOAD_TOO_LARGE,
            "message": f"Request body exceeds the {limit_mb} MB upload limit.",
        }), 413

    @app.errorhandler(NotFound)
    def handle_not_found(error: NotFound):
        return jsonify({
            "success": False,
            "code": ErrorCode.NOT_FOUND,
            "message": f"No route for {request.method} {request.path}.",
        }), 404

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        Other werkzeug HTTP errors (405 etc.) keep their status code.
        """
        if isinstance(error, HTTPException):
            return jsonify({
                "success": False,
                "code": error.name.upper().replace(" ", "_"),
                "message": error.description,
            }), error.code

        app.logger.exception("Unhandled exception on %s %s", request.method, request.path)

        body = {
            "success": False,
            "code": ErrorCode.INTERNAL_ERROR,
            "message": "An unexpected error occurred. Please try again later.",
        }
        if app.config.get("DEBUG"):
            body["detail"] = str(error)
        return jsonify(body), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for the configured frontend origins.

    Auth travels in cookies, so the origin must be echoed back exactly
    (never "*") together with Allow-Credentials.
    """
    allowed = set(app.config.get("CORS_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = (
                "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            )
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response


def _first_validation_error(messages, prefix: str | None = None) -> tuple[str | None, str]:
    """
    Walks marshmallow's (possibly nested) messages and returns the first
    (field path, message) pair.
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            if key == "_schema":
                path = prefix
            else:
                path = f"{prefix}.{key}" if prefix else str(key)
            return _first_validation_error(value, path)
    elif isinstance(messages, list) and messages:
        return _first_validation_error(messages[0], prefix)
    elif isinstance(messages, str):
        return prefix, messages
    return prefix, "Invalid input."


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself
    (e.g. INVALID_PRICE_PRECISION raised as ValidationError in schemas).
    """
    _messages = {
        "INVALID_PRICE_PRECISION": "Price must have at most 2 decimal places.",
        "INVALID_JSON_LIST": "Expected a JSON array.",
        "SEARCH_QUERY_REQUIRED": "Search query is required.",
        "INVALID_STATUS": "status must be one of: pending, shipped, delivered.",
    }
    return _messages.get(code, "Invalid input.")
