"""
billing/totals.py

Aggregate recalculation engine (read-time).

Policy: stored aggregates on Job are caches. Every reported total is derived from the live
children at read time and silently wins over the stored value:

    item_sum    = sum(item.total)                 if the job has items
                = job.total_amount (stored)       otherwise
    final_total = item_sum if item_sum > 0 else job.total_amount (stored)

NOTE:
- The fallback-on-zero rule is intentional: a job whose items sum to exactly 0 keeps its stored
  (possibly manually entered) total instead of reporting 0.
- Expenses with is_active=False are excluded everywhere but never removed.
- Dashboard profit is computed from JOBS only. Topsheets are annotated for information and
  never summed into revenue/expenses/profit.

All functions duck-type on attributes so they run on ORM rows or lightweight test doubles.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Iterable

from .money import to_float

MONTH_NAMES = list(calendar.month_name)[1:]
REPORTED_TOPSHEET_STATUSES = ("SUBMITTED", "APPROVED", "COMPLETED")


# ---------------------------------------------------------------------
# Job level
# ---------------------------------------------------------------------
def job_item_sum(job) -> float:
    items = getattr(job, "items", None) or []
    if not items:
        return to_float(getattr(job, "total_amount", None))
    return sum((to_float(item.total) for item in items), 0.0)


def job_final_total(job) -> float:
    """The authoritative job total (see module docstring for the fallback rule)."""
    recalculated = job_item_sum(job)
    if recalculated > 0:
        return recalculated
    return to_float(getattr(job, "total_amount", None))


def _is_active(expense) -> bool:
    # Unflushed rows have is_active=None; the column default is True.
    return getattr(expense, "is_active", True) is not False


def active_expenses_total(job) -> float:
    expenses = getattr(job, "expenses", None) or []
    return sum((to_float(e.amount) for e in expenses if _is_active(e)), 0.0)


def job_expected_profit(job) -> float:
    return job_final_total(job) - active_expenses_total(job)


# ---------------------------------------------------------------------
# Topsheet level
# ---------------------------------------------------------------------
def topsheet_rollup(topsheet) -> dict:
    """grand_total / total_expenses / total_profit over the member jobs (no stored totals)."""
    jobs = getattr(topsheet, "jobs", None) or []
    grand_total = sum((job_final_total(job) for job in jobs), 0.0)
    total_expenses = sum((active_expenses_total(job) for job in jobs), 0.0)
    return {
        "grand_total": grand_total,
        "total_expenses": total_expenses,
        "total_profit": grand_total - total_expenses,
    }


# ---------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------
def _job_summary(job, total: float) -> dict:
    customer = getattr(job, "customer", None)
    return {
        "id": job.id,
        "ref_number": job.ref_number,
        "subject": job.subject,
        "customer_name": customer.name if customer else None,
        "status": job.status,
        "date": job.date.isoformat() if job.date else None,
        "total_amount": total,
    }


def _topsheet_ref(topsheet) -> dict:
    return {
        "id": topsheet.id,
        "topsheet_number": topsheet.topsheet_number,
        "status": topsheet.status,
        "job_count": len(getattr(topsheet, "jobs", None) or []),
    }


def _in_year(value, year: int) -> bool:
    return value is not None and value.year == year


def dashboard_summary(jobs: Iterable, topsheets: Iterable, year: int, today: date | None = None) -> dict:
    """
    Yearly dashboard.

    - jobs_by_month: count / total_amount / job summaries, bucketed by Job.date month
    - monthly_profit: revenue / expenses / profit from jobs, annotated with topsheet refs
      ("topsheets" = submitted/approved/completed, "all_topsheets" = every status)
    """
    today = today or date.today()
    jobs = [job for job in jobs if _in_year(job.date, year)]
    topsheets = [ts for ts in topsheets if _in_year(ts.date, year)]

    jobs_by_month = {name: {"count": 0, "total_amount": 0.0, "jobs": []} for name in MONTH_NAMES}
    for job in jobs:
        bucket = jobs_by_month[MONTH_NAMES[job.date.month - 1]]
        total = job_final_total(job)
        bucket["count"] += 1
        bucket["total_amount"] += total
        bucket["jobs"].append(_job_summary(job, total))

    monthly_profit = {
        name: {
            "revenue": 0.0,
            "expenses": 0.0,
            "profit": 0.0,
            "job_count": 0,
            "topsheets": [],
            "all_topsheets": [],
        }
        for name in MONTH_NAMES
    }
    for job in jobs:
        bucket = monthly_profit[MONTH_NAMES[job.date.month - 1]]
        revenue = job_final_total(job)
        expenses = active_expenses_total(job)
        bucket["revenue"] += revenue
        bucket["expenses"] += expenses
        bucket["profit"] += revenue - expenses
        bucket["job_count"] += 1

    # Informational only: topsheets never feed the money figures above.
    for topsheet in topsheets:
        bucket = monthly_profit[MONTH_NAMES[topsheet.date.month - 1]]
        ref = _topsheet_ref(topsheet)
        bucket["all_topsheets"].append(ref)
        if topsheet.status in REPORTED_TOPSHEET_STATUSES:
            bucket["topsheets"].append(ref)

    jobs_by_status: dict = {}
    for job in jobs:
        jobs_by_status[job.status] = jobs_by_status.get(job.status, 0) + 1

    annual_revenue = sum(m["revenue"] for m in monthly_profit.values())
    annual_expenses = sum(m["expenses"] for m in monthly_profit.values())

    current_month = None
    if today.year == year:
        name = MONTH_NAMES[today.month - 1]
        current_month = {"name": name, **monthly_profit[name]}

    return {
        "year": year,
        "jobs_by_month": jobs_by_month,
        "monthly_profit": monthly_profit,
        "annual": {
            "revenue": annual_revenue,
            "expenses": annual_expenses,
            "profit": annual_revenue - annual_expenses,
            "job_count": len(jobs),
        },
        "current_month": current_month,
        "jobs_by_status": jobs_by_status,
        "topsheets_count": sum(1 for ts in topsheets if ts.status in REPORTED_TOPSHEET_STATUSES),
        "all_topsheets_count": len(topsheets),
    }
