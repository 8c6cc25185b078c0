"""
Application Factory for the BIP47 Terminal

Implements the Flask application factory pattern with:
- Blueprint registration
- Security configuration (headers, CORS, rate limiting)
- Per-application Auth47 state, guestbook storage and Paynym client
- JSON error handling
"""

import logging
from typing import Any, Mapping, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from bip47_terminal.audit_logger import init_audit_logger
from bip47_terminal.auth47 import Auth47
from bip47_terminal.challenges import ChallengeStore, ChallengeSweeper
from bip47_terminal.config import get_config, validate_config
from bip47_terminal.database import Database
from bip47_terminal.guestbook import Guestbook, GuestbookRepository
from bip47_terminal.paynym import PaynymClient
from bip47_terminal.security import init_security

logger = logging.getLogger(__name__)


def create_app(config_override: Optional[Mapping[str, Any]] = None, auth47: Optional[Auth47] = None) -> Flask:
    """
    Create and configure the Flask application using the factory pattern.

    Args:
        config_override: Values layered over the environment configuration
        auth47: Pre-built Auth47 bundle (tests inject clocks and fakes here)

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration
    cfg = dict(get_config())
    if config_override:
        cfg.update(config_override)
    validate_config(cfg)
    app.config["APP_CONFIG"] = cfg

    app.secret_key = cfg.get("FLASK_SECRET_KEY") or "dev-secret-CHANGE-ME-IN-PRODUCTION"
    if cfg.get("TESTING"):
        app.config["TESTING"] = True

    init_security(app, cfg)
    init_audit_logger()

    init_extensions(app, cfg, auth47)

    register_blueprints(app)
    register_error_handlers(app)
    register_request_handlers(app)

    logger.info("🚀 Application factory completed successfully")
    return app


def init_extensions(app: Flask, cfg: Mapping[str, Any], auth47: Optional[Auth47] = None) -> None:
    """Attach the Auth47 bundle, guestbook and Paynym client to ``app.extensions``."""

    if auth47 is None:
        store = ChallengeStore(retention=cfg.get("CHALLENGE_RETENTION", 300))
        auth47 = Auth47(cfg["CALLBACK_URL"], store=store, ttl=cfg.get("CHALLENGE_TTL", 300))
    app.extensions["auth47"] = auth47

    interval = cfg.get("CHALLENGE_SWEEP_INTERVAL", 0)
    if interval and interval > 0 and not cfg.get("TESTING"):
        sweeper = ChallengeSweeper(auth47.store, interval)
        sweeper.start()
        app.extensions["challenge_sweeper"] = sweeper

    paynym = PaynymClient(cfg.get("PAYNYM_API_URL", "https://paynym.rs"), timeout=cfg.get("PAYNYM_TIMEOUT", 10))
    app.extensions["paynym"] = paynym

    repository = None
    database_url = cfg.get("DATABASE_URL")
    if database_url:
        try:
            database = Database(database_url)
            app.extensions["database"] = database
            repository = GuestbookRepository(database)
        except Exception as e:
            # The guestbook degrades to 503s; authentication keeps working.
            logger.error(f"❌ Database initialization failed: {e}")
            logger.warning("⚠️  Running without database - guestbook will be disabled")
    else:
        logger.warning("⚠️  DATABASE_URL not set - guestbook will be disabled")

    app.extensions["guestbook"] = Guestbook(
        auth47.store,
        repository,
        paynym,
        max_message_length=cfg.get("GUESTBOOK_MAX_MESSAGE_LENGTH", 500),
    )

    logger.info(f"✅ Auth47 initialized: callback={auth47.callback_url}")


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""

    # Auth47 issuance, polling and both redemption paths
    from bip47_terminal.blueprints.auth47 import auth47_bp
    app.register_blueprint(auth47_bp)

    # Paynym proxy
    from bip47_terminal.blueprints.paynym import paynym_bp
    app.register_blueprint(paynym_bp, url_prefix="/api/paynym")

    # Payment code lab
    from bip47_terminal.blueprints.lab import lab_bp
    app.register_blueprint(lab_bp, url_prefix="/api/bip47")

    # Guestbook API
    from bip47_terminal.blueprints.guestbook import guestbook_bp
    app.register_blueprint(guestbook_bp, url_prefix="/api/guestbook")

    # Health and metrics
    from bip47_terminal.blueprints.admin import admin_bp
    app.register_blueprint(admin_bp)

    # HTML pages
    from bip47_terminal.blueprints.ui import ui_bp
    app.register_blueprint(ui_bp)

    logger.info("✅ All blueprints registered")


def register_error_handlers(app: Flask) -> None:
    """Register global error handlers."""

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"error": "bad_request", "message": str(e)}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "method_not_allowed", "message": str(e)}), 405

    @app.errorhandler(429)
    def rate_limit_exceeded(e):
        from flask import request

        from bip47_terminal.audit_logger import get_audit_logger

        get_audit_logger().log_rate_limit_exceeded(request.remote_addr, request.path)
        return jsonify({"error": "rate_limit_exceeded", "message": str(e)}), 429

    @app.errorhandler(500)
    def internal_error(e):
        logger.error(f"Internal server error: {e}", exc_info=True)
        return jsonify({"error": "internal_error", "message": "An unexpected error occurred"}), 500

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.name.lower().replace(" ", "_"), "message": e.description}), e.code


def register_request_handlers(app: Flask) -> None:
    """Register before/after request handlers."""

    @app.teardown_appcontext
    def cleanup(error=None):
        """Cleanup resources after request."""
        if error:
            logger.error(f"Request cleanup with error: {error}")
        database = app.extensions.get("database")
        if database is not None:
            database.remove_session()
