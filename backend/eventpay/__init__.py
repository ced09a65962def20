# backend/eventpay/__init__.py
import logging

from flask import Flask, jsonify

from .config import Config
from .errors import EngineError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.payment_config import payment_config_bp
    from .routes.consignment import consignment_bp
    from .routes.sellers import sellers_bp
    from .routes.tickets import tickets_bp
    from .routes.credits import credits_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(payment_config_bp)
    app.register_blueprint(consignment_bp)
    app.register_blueprint(sellers_bp)
    app.register_blueprint(tickets_bp)
    app.register_blueprint(credits_bp)

    @app.errorhandler(EngineError)
    def handle_engine_error(e: EngineError):
        return jsonify(e.to_dict()), e.status_code

    # Side-effect receivers (notifications) run after commit
    from .signals import connect_default_receivers
    connect_default_receivers()

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
