"""
billing/seed.py

Seed default application settings and bootstrap users.

Rules:
- Safe to run multiple times (idempotent).
- Existing stored settings are never overwritten; missing keys inside a section are filled in.
"""

from __future__ import annotations

import logging

from flask import current_app

from .documents.config import to_stored_settings
from .errors import ConflictError, ValidationError
from .extensions import db
from .models import User
from .settings_store import get_setting_value, set_setting

logger = logging.getLogger(__name__)


def seed_default_settings() -> dict:
    """Store default render settings under SETTINGS_KEY, keeping any values already saved."""
    key = current_app.config["SETTINGS_KEY"]
    current = get_setting_value(key) or {}
    merged = to_stored_settings()

    for section, values in merged.items():
        saved = current.get(section)
        if isinstance(saved, dict):
            values.update(saved)
    for section, values in current.items():
        merged.setdefault(section, values)

    set_setting(key, merged, description="Document render settings")
    db.session.commit()
    logger.info("Render settings seeded under %r", key)
    return merged


def create_user(username: str, password: str, *, name: str | None = None, is_admin: bool = False) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("Username and password are required")
    if User.query.filter_by(username=username).first():
        raise ConflictError(f"User {username!r} already exists")

    user = User(username=username, name=name, is_admin=is_admin, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("User %s created (admin=%s)", username, is_admin)
    return user
