"""
billing/__init__.py

Flask application factory for the Billing & Document Service.

Requirements:
- JSON API only: every error leaves as a JSON body with the right status code.
- Multi-tenant: every customer/job/topsheet row belongs to one user; routes scope queries to
  current_user (see billing/security.py).
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev.

Blueprints:
- /auth            login / logout / me / csrf-token
- /api/customers   customers
- /api/jobs        jobs and their expenses
- /api/topsheets   topsheet batches
- /api/documents   quotation / challan / bill / topsheet rendering (html, pdf, xlsx)
- /api/dashboard   yearly rollups
- /api/settings    key -> JSON settings store
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from flask_login import current_user
from werkzeug.exceptions import HTTPException

from .errors import BillingError
from .extensions import csrf, db, login_manager, migrate
from .models import User

logger = logging.getLogger(__name__)


def _configure_logging(app: Flask) -> None:
    """Level for the 'billing' logger tree; a stream handler when nothing is attached yet."""
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    package_logger = logging.getLogger("billing")
    package_logger.setLevel(level)
    if not package_logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        package_logger.addHandler(handler)


def create_app(config_object: str = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized", "message": "Login required."}), 401

    # ----------------------------------------------------------------------
    # Errors (JSON everywhere)
    # ----------------------------------------------------------------------
    @app.errorhandler(BillingError)
    def handle_billing_error(exc: BillingError):
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("%s: %s", exc.__class__.__name__, exc.message)
        else:
            logger.info("%s: %s", exc.__class__.__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.name, "message": exc.description}), exc.code

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.customers import customers_bp
    from .blueprints.dashboard import dashboard_bp
    from .blueprints.documents import documents_bp
    from .blueprints.inventory import inventory_bp
    from .blueprints.jobs import jobs_bp
    from .blueprints.settings import settings_bp
    from .blueprints.topsheets import topsheets_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(jobs_bp)
    app.register_blueprint(topsheets_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(settings_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-settings")
    def seed_settings_command():
        """Store the default render settings (keeps values already saved)."""
        from .seed import seed_default_settings

        seed_default_settings()
        click.echo(f"Default settings stored under {app.config['SETTINGS_KEY']!r}.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.password_option()
    @click.option("--name", default=None, help="Display name.")
    @click.option("--admin", is_flag=True, help="Grant admin rights (settings store writes).")
    def create_user_command(username, password, name, admin):
        """Bootstrap a login user."""
        from .seed import create_user

        try:
            user = create_user(username, password, name=name, is_admin=admin)
        except BillingError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"User {user.username} created.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Service banner."""
        return jsonify({
            "name": app.config.get("APP_NAME"),
            "authenticated": bool(current_user.is_authenticated),
        })

    return app
