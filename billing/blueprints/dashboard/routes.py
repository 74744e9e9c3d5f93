"""
billing/blueprints/dashboard/routes.py

GET /api/dashboard?year=YYYY

Yearly revenue / expense / profit rollups for the current user. All money figures are recomputed
from job items and active expenses (billing/totals.py); cached Job columns are never summed.
"""

from __future__ import annotations

from datetime import MAXYEAR, MINYEAR, date

from flask import Blueprint, jsonify, request
from flask_login import login_required
from sqlalchemy.orm import selectinload

from ...errors import ValidationError
from ...models import Job, Topsheet
from ...security import owned
from ...totals import dashboard_summary
from ...utils import parse_optional_int

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.route("", methods=["GET"])
@login_required
def dashboard():
    today = date.today()
    year = parse_optional_int(request.args.get("year")) or today.year
    if not MINYEAR <= year <= MAXYEAR:
        raise ValidationError("year is out of range", details={"year": year})

    start, end = date(year, 1, 1), date(year, 12, 31)
    jobs = (
        owned(Job)
        .filter(Job.date >= start, Job.date <= end)
        .options(selectinload(Job.items), selectinload(Job.expenses), selectinload(Job.customer))
        .order_by(Job.date.asc(), Job.id.asc())
        .all()
    )
    topsheets = (
        owned(Topsheet)
        .filter(Topsheet.date >= start, Topsheet.date <= end)
        .options(selectinload(Topsheet.jobs))
        .all()
    )
    return jsonify(dashboard_summary(jobs, topsheets, year, today=today))
