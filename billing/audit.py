"""
billing/audit.py

Audit trail for customer, job, expense and topsheet mutations.

Each mutation adds one AuditLog row:
- WHO: user id + username snapshot (kept even if the user is renamed or deleted)
- WHAT: entity type / id and CREATE / UPDATE / DELETE
- BEFORE / AFTER: column snapshots as JSON; UPDATE rows keep only the columns that changed
- WHERE FROM: client IP

IMPORTANT:
- log_action() only ADDS to the session. The route owns the transaction and commits.
- Entities must be flushed first so they have an id.
- Bookkeeping columns (timestamps, password hash) never enter a snapshot.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from flask import request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

logger = logging.getLogger(__name__)

SKIPPED_COLUMNS = frozenset({"password_hash", "created_at", "updated_at"})

# Human reference printed in the log line, per entity type.
LABEL_ATTRIBUTES = ("ref_number", "topsheet_number", "name", "description")


def _safe_str(value: Any) -> Optional[str]:
    """Stable string form for JSON storage (floats, dates and ints all stringify cleanly)."""
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """Scalar column snapshot of a model instance (relationships are not followed)."""
    return {
        column.name: _safe_str(getattr(instance, column.name))
        for column in instance.__table__.columns
        if column.name not in SKIPPED_COLUMNS
    }


def _changed_only(before: Dict[str, Any], after: Dict[str, Any]) -> tuple[dict, dict]:
    keys = [key for key in after if before.get(key) != after.get(key)]
    return {key: before.get(key) for key in keys}, {key: after.get(key) for key in keys}


def _label(entity: Any) -> str:
    for attribute in LABEL_ATTRIBUTES:
        value = getattr(entity, attribute, None)
        if value:
            return str(value)
    return ""


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """
    Add an AuditLog entry for `entity` to the current session.

    An UPDATE whose snapshots are identical records nothing and returns None.

    SECURITY NOTE:
    - request.remote_addr is as Flask sees it. Behind a reverse proxy configure ProxyFix.
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    action = str(action).upper()
    if action == "UPDATE" and before is not None and after is not None:
        before, after = _changed_only(before, after)
        if not after:
            return None

    entry = AuditLog(
        user_id=current_user.id if current_user.is_authenticated else None,
        username_snapshot=current_user.username if current_user.is_authenticated else None,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=action,
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr,
    )
    db.session.add(entry)
    logger.info("%s %s #%s %s", action, entry.entity_type, entity_id, _label(entity))
    return entry
