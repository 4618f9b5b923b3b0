# backend/insightbi/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app: Flask-SQLAlchemy reads the URI once.
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.companies import companies_bp, invitations_bp
    from .routes.products import products_bp
    from .routes.catalog import catalog_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp, customers_bp, salespeople_bp
    from .routes.collections import collections_bp, receivables_bp
    from .routes.imports import imports_bp, legacy_import_bp
    from .routes.exports import exports_bp, reports_bp
    from .routes.ai import ai_bp
    from .routes.chat import chat_bp
    from .routes.data import data_bp
    from .routes.dashboard import dashboard_bp, dashboards_bp

    for bp in (
        system_bp,
        auth_bp,
        companies_bp,
        invitations_bp,
        products_bp,
        catalog_bp,
        inventory_bp,
        sales_bp,
        customers_bp,
        salespeople_bp,
        collections_bp,
        receivables_bp,
        imports_bp,
        legacy_import_bp,
        exports_bp,
        reports_bp,
        ai_bp,
        chat_bp,
        data_bp,
        dashboard_bp,
        dashboards_bp,
    ):
        app.register_blueprint(bp)

    allowed_origins = {
        o.strip() for o in str(app.config.get("CORS_ORIGINS", "")).split(",") if o.strip()
    }

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    @app.errorhandler(404)
    def not_found(_e):
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def payload_too_large(_e):
        return {"error": f"File too large (max {app.config.get('MAX_UPLOAD_MB')} MB)"}, 413

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
