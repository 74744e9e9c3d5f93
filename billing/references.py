"""
billing/references.py

Reference-number generators for jobs, bills and challans.

Format: PREFIX-YYYYMM-<random zero-padded digits>

NOTE:
- Non-cryptographic and NOT guaranteed unique. Uniqueness of Job.ref_number is enforced by
  the database constraint; the jobs API retries on collision.
"""

from __future__ import annotations

import random
from datetime import date


def _generate(prefix: str, digits: int, today: date | None = None) -> str:
    today = today or date.today()
    suffix = str(random.randint(0, 10 ** digits - 1)).zfill(digits)
    return f"{prefix}-{today.year}{today.month:02d}-{suffix}"


def generate_ref_number(prefix: str = "JB", today: date | None = None) -> str:
    """JB-202403-042"""
    return _generate(prefix, 3, today)


def generate_bill_number(prefix: str = "INV", today: date | None = None) -> str:
    """INV-202403-0042"""
    return _generate(prefix, 4, today)


def generate_challan_number(prefix: str = "CHL", today: date | None = None) -> str:
    """CHL-202403-0042"""
    return _generate(prefix, 4, today)
