"""
Application configuration.

This module defines the configuration settings for the billing application: database connection,
secret key, logging, and the knobs used by the document renderers (asset root, image fetch timeout,
render timeout). It uses environment variables for sensitive information and defaults for development.
In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'billing.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for mutating API calls (token from /auth/csrf-token, sent as X-CSRFToken)
    WTF_CSRF_ENABLED = True

    APP_NAME = "Billing & Document Service"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Documents
    RENDER_TIMEOUT_SECONDS = _env_int("RENDER_TIMEOUT_SECONDS", 60)
    IMAGE_FETCH_TIMEOUT_SECONDS = _env_int("IMAGE_FETCH_TIMEOUT_SECONDS", 10)
    # Web-style image paths ("/images/pad.png") are resolved under this folder.
    DOCUMENT_ASSET_ROOT = os.environ.get("DOCUMENT_ASSET_ROOT", str(BASE_DIR / "static"))

    # Settings store key holding the persisted render settings (JSON).
    SETTINGS_KEY = "appSettings"

    JOBS_PER_PAGE = 20


class TestingConfig(Config):
    """In-memory database, no CSRF."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    RENDER_TIMEOUT_SECONDS = 30
