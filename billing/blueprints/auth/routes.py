"""
Authentication Routes

Provides:
- POST /auth/login
- POST /auth/logout
- GET  /auth/me
- GET  /auth/csrf-token
- POST /auth/seed-admin (first system bootstrap)

Rules:
- Only active users may log in.
- Credentials validated via password hash.
- seed-admin works only while the users table is empty.
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...errors import ConflictError, ValidationError
from ...models import User
from ...seed import create_user
from ...utils import json_payload

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _user_dict(user: User) -> dict:
    return {"id": user.id, "username": user.username, "name": user.name, "is_admin": user.is_admin}


# ============================================================
# LOGIN / LOGOUT
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate a user and open a session."""
    payload = json_payload()
    username = str(payload.get("username") or "").strip()
    password = str(payload.get("password") or "")

    user = User.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        return jsonify({"error": "Unauthorized", "message": "Invalid username or password."}), 401

    if not user.is_active:
        return jsonify({"error": "Forbidden", "message": "Account is inactive."}), 403

    login_user(user, remember=bool(payload.get("remember")))
    return jsonify({"user": _user_dict(user)})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"ok": True})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"user": _user_dict(current_user)})


@auth_bp.route("/csrf-token")
def csrf_token():
    """Token for mutating calls; send it back as the X-CSRFToken header."""
    return jsonify({"csrf_token": generate_csrf()})


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["POST"])
def seed_admin():
    """Bootstrap the FIRST admin of the system."""
    if User.query.count() > 0:
        raise ConflictError("A user already exists")

    payload = json_payload()
    username = str(payload.get("username") or "").strip()
    password = str(payload.get("password") or "")
    if not username or not password:
        raise ValidationError("Username and password are required")

    user = create_user(username, password, name=payload.get("name"), is_admin=True)
    return jsonify({"user": _user_dict(user)}), 201
