"""
billing/blueprints/settings/routes.py

Key -> JSON settings store.

Routes:
- GET    /api/settings             every key as {key: value}
- GET    /api/settings/render      effective render settings (defaults -> stored appSettings)
- GET    /api/settings/<key>       one value (null when missing)
- PUT    /api/settings/<key>       create or replace (admin)
- DELETE /api/settings/<key>       remove (admin)

SECURITY NOTE:
- The store is global (not per user); only admins may change it.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import login_required

from ...errors import ValidationError
from ...extensions import db
from ...models import Setting
from ...security import admin_required
from ...settings_store import get_setting, load_render_settings, set_setting
from ...utils import json_payload

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.route("", methods=["GET"])
@login_required
def list_settings():
    return jsonify({s.key: s.data for s in Setting.query.order_by(Setting.key.asc()).all()})


@settings_bp.route("/render", methods=["GET"])
@login_required
def render_settings():
    return jsonify(load_render_settings().to_dict())


@settings_bp.route("/<key>", methods=["GET"])
@login_required
def get_setting_value(key: str):
    setting = get_setting(key)
    return jsonify({"key": key, "value": setting.data if setting else None})


@settings_bp.route("/<key>", methods=["PUT"])
@login_required
@admin_required
def put_setting(key: str):
    payload = json_payload()
    if "value" not in payload:
        raise ValidationError("value is required")

    setting = set_setting(key, payload["value"], description=payload.get("description"))
    db.session.commit()
    logger.info("Setting %r saved", key)
    return jsonify(setting.to_dict())


@settings_bp.route("/<key>", methods=["DELETE"])
@login_required
@admin_required
def delete_setting(key: str):
    setting = get_setting(key)
    if setting is None:
        return jsonify({"error": "Not Found", "message": f"Setting {key!r} does not exist."}), 404
    db.session.delete(setting)
    db.session.commit()
    logger.info("Setting %r deleted", key)
    return jsonify({"ok": True})
