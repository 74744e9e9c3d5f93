"""
billing/settings_store.py

Key -> JSON settings store helpers.

The render settings are persisted under current_app.config["SETTINGS_KEY"] ("appSettings") in the
nested camelCase shape produced by documents.config.to_stored_settings().

IMPORTANT:
- set_setting() adds/updates rows in the session; the caller commits.
- load_render_settings() is the ONLY place that reads stored render settings for a request;
  renderers receive the resulting RenderSettings value and never touch the database.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from .documents.config import RenderSettings, build_render_settings
from .extensions import db
from .models import Setting


def get_setting(key: str) -> Setting | None:
    return Setting.query.filter_by(key=key).first()


def get_setting_value(key: str, default: Any = None) -> Any:
    setting = get_setting(key)
    if setting is None:
        return default
    return setting.data


def set_setting(key: str, value: Any, description: str | None = None) -> Setting:
    """Create or replace the value stored under `key`."""
    setting = get_setting(key)
    if setting is None:
        setting = Setting(key=key)
        db.session.add(setting)
    setting.data = value
    if description is not None:
        setting.description = description
    return setting


def load_render_settings(overrides: Mapping | None = None) -> RenderSettings:
    """Effective render settings: defaults -> stored appSettings -> per-call overrides."""
    stored = get_setting_value(current_app.config["SETTINGS_KEY"])
    if not isinstance(stored, Mapping):
        stored = None
    return build_render_settings(stored, overrides)
