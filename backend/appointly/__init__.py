# backend/appointly/__init__.py
from flask import Flask, jsonify, request
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate



def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.bookings import bookings_bp
    from .routes.staff import staff_bp
    from .routes.settings import settings_bp
    from .routes.marketing import marketing_bp
    from .routes.catalog import catalog_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(bookings_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(marketing_bp)
    app.register_blueprint(catalog_bp)

    @app.errorhandler(OperationalError)
    def database_unavailable(e):
        # Retries already ran in the service layer; the caller may retry later
        db.session.rollback()
        app.logger.exception("Database unavailable: %s %s", request.method, request.path)
        return jsonify({"error": "Database temporarily unavailable", "code": "DB_UNAVAILABLE", "details": {}}), 503

    @app.errorhandler(Exception)
    def unexpected_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description, "code": e.name.upper().replace(" ", "_"), "details": {}}), e.code
        db.session.rollback()
        app.logger.exception("Unhandled error: %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR", "details": {}}), 500

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", ()))
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = f"Content-Type, {app.config['TENANT_HEADER']}"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
