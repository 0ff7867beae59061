# backend/laundromat/__init__.py
from flask import Flask, request, jsonify
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .extensions import db, migrate


def _engine_options(database_uri: str, timeout: float) -> dict:
    """Bound every storage round trip by STORAGE_TIMEOUT_SECONDS."""
    url = make_url(database_uri)
    if url.get_backend_name() == "sqlite":
        return {"connect_args": {"timeout": timeout}}
    if url.get_backend_name() == "postgresql":
        return {
            "pool_timeout": timeout,
            "pool_pre_ping": True,
            "connect_args": {
                "connect_timeout": max(1, int(timeout)),
                "options": f"-c statement_timeout={int(timeout * 1000)} -c lock_timeout={int(timeout * 1000)}",
            },
        }
    return {"pool_timeout": timeout}


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    if "SQLALCHEMY_ENGINE_OPTIONS" not in (config_overrides or {}):
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(
            app.config["SQLALCHEMY_DATABASE_URI"],
            float(app.config["STORAGE_TIMEOUT_SECONDS"]),
        )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # External collaborators; tests swap these for fakes
    from .services.payment_gateway import build_gateway
    from .services.notification_service import HttpNotifier
    app.extensions["payment_gateway"] = build_gateway(app.config)
    app.extensions["notifier"] = HttpNotifier.from_config(app.config)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.settings import settings_bp
    from .routes.services import services_bp
    from .routes.customers import customers_bp
    from .routes.orders import orders_bp
    from .routes.driver import driver_bp
    from .routes.cash_drawer import cash_drawer_bp
    from .routes.timekeeping import timekeeping_bp
    from .routes.reports import reports_bp
    from .routes.public import public_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(services_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(driver_bp)
    app.register_blueprint(cash_drawer_bp)
    app.register_blueprint(timekeeping_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(public_bp)

    from .services.concurrency import StorageTimeoutError, is_storage_timeout

    @app.errorhandler(SQLAlchemyError)
    @app.errorhandler(StorageTimeoutError)
    def handle_storage_error(exc):
        db.session.rollback()
        app.logger.exception("Unhandled storage error on %s %s", request.method, request.path)
        if is_storage_timeout(exc):
            return jsonify({"error": "Storage timeout, please retry"}), 503
        return jsonify({"error": "Internal server error"}), 500

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
