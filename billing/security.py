"""
billing/security.py

Access control helpers for the billing API.

Key rules:
- Every tenant-scoped row (Customer, Job, Topsheet) carries user_id. A user only ever sees their own
  rows; rows of other users answer 404 (existence is not leaked).
- Admin: may change the global settings store.
- Unauthenticated / forbidden responses are JSON (the API has no HTML pages).

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import jsonify
from flask_login import current_user


def _forbidden():
    """Consistent 403 body."""
    return jsonify({"error": "Forbidden", "message": "You do not have permission for this action."}), 403


def is_admin() -> bool:
    """Return True if current user is authenticated and admin."""
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: admin-only."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not is_admin():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper


def owned(model):
    """Query of `model` restricted to the current user's rows."""
    return model.query.filter(model.user_id == current_user.id)


def get_owned_or_404(model, entity_id: int):
    """Load one of the current user's rows or abort 404."""
    return owned(model).filter(model.id == entity_id).first_or_404()
