"""
Utility functions shared across the API blueprints:
- JSON payload access
- strict parsing of request values (invalid input -> ValidationError -> HTTP 400)
- pagination arguments
"""

from __future__ import annotations

from datetime import date

from flask import current_app, request

from .errors import ValidationError
from .formatting import parse_date


def json_payload() -> dict:
    """Request JSON body as a dict ({} when absent)."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def parse_optional_int(value) -> int | None:
    """Parse optional int from query/body; returns None for empty/invalid."""
    if value is None:
        return None
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_number(value, field: str, default: float = 0.0) -> float:
    """Parse a number from the payload (accepts comma or dot). Empty -> default."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        raise ValidationError(f"{field} must be a number", details={"value": value}) from None


def parse_date_value(value, field: str) -> date | None:
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", details={"value": value}) from None


def require_choice(value, choices, field: str) -> str:
    if value not in choices:
        raise ValidationError(f"Invalid {field}", details={"value": value, "allowed": list(choices)})
    return value


def page_args(default_limit: int | None = None) -> tuple[int, int]:
    """(page, limit) from the query string, clamped to sane values."""
    page = parse_optional_int(request.args.get("page")) or 1
    limit = (
        parse_optional_int(request.args.get("limit"))
        or default_limit
        or current_app.config.get("JOBS_PER_PAGE", 20)
    )
    return max(page, 1), min(max(limit, 1), 100)
