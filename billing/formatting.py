"""
billing/formatting.py

Date formatting shared by the document backends.

Two numeric styles are supported:
- "US": MM/DD/YYYY
- "BD": DD/MM/YYYY (default)

An optional literal prefix ("Date: ") is prepended when show_prefix is set.
"""

from __future__ import annotations

from datetime import date, datetime

DATE_STYLE_US = "US"
DATE_STYLE_BD = "BD"
DATE_STYLES = (DATE_STYLE_US, DATE_STYLE_BD)

MISSING_DATE = "N/A"


def parse_date(value) -> date | None:
    """Accept date, datetime or ISO strings ('2024-03-05', '2024-03-05T10:00:00Z')."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1]
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return date.fromisoformat(text[:10])


def format_date(value, style: str = DATE_STYLE_BD, show_prefix: bool = False, prefix: str = "Date: ") -> str:
    """
    Format a date for documents.

    Missing dates render as 'N/A' (prefix still applied, so the meta row keeps its label).
    Unparsable strings raise ValueError; callers pass stored dates, not user text.
    """
    parsed = parse_date(value)
    if parsed is None:
        text = MISSING_DATE
    elif style == DATE_STYLE_US:
        text = parsed.strftime("%m/%d/%Y")
    else:
        text = parsed.strftime("%d/%m/%Y")

    if show_prefix and prefix:
        return f"{prefix}{text}"
    return text
