"""
billing/blueprints/jobs/routes.py

Jobs and job expenses (JSON API).

Routes:
- GET    /api/jobs                            list (search, status, page, limit), newest first
- POST   /api/jobs                            create with line items
- GET    /api/jobs/<id>                       one job with items + active expenses
- PUT    /api/jobs/<id>                       update (item replacement OR status-only)
- DELETE /api/jobs/<id>                       delete (items, measurements, expenses cascade)
- GET    /api/jobs/<id>/expenses              active expenses
- POST   /api/jobs/<id>/expenses              add expense
- PUT    /api/jobs/<id>/expenses/<eid>        edit expense
- DELETE /api/jobs/<id>/expenses/<eid>        soft delete (is_active = False)

IMPORTANT:
- Every query is scoped to current_user (billing/security.py).
- An update WITHOUT items (missing or empty list) is a status-only update: header fields change,
  items and the stored aggregates (subtotal, total_vat, discount_amount, total_amount) are left
  exactly as they were.
- An update WITH items replaces the whole item set and recomputes the aggregates.
- Every expense mutation resyncs Job.total_expenses / Job.expected_profit.
- Mutations are audited (AuditLog) in the same transaction.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from ...audit import log_action, serialize_model
from ...errors import ConflictError, ValidationError
from ...extensions import db
from ...models import EXPENSE_CATEGORIES, JOB_STATUSES, Customer, InventoryItem, Job, JobExpense, JobItem, Measurement
from ...pricing import prepare_line_items, rollup_job_totals
from ...references import generate_ref_number
from ...security import get_owned_or_404, owned
from ...utils import json_payload, page_args, parse_date_value, parse_number, parse_optional_int, require_choice

logger = logging.getLogger(__name__)

jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")

JOB_TEXT_FIELDS = (
    "subject",
    "job_detail",
    "work_location",
    "notes",
    "terms_conditions",
    "bill_number",
    "bbl_bill_number",
    "challan_number",
)
JOB_DATE_FIELDS = ("quotation_date", "challan_date", "bill_date")
REF_NUMBER_ATTEMPTS = 5


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _clean_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _owned_customer_id(value) -> int | None:
    """Validate that customer_id points at one of the current user's customers."""
    customer_id = parse_optional_int(value)
    if customer_id is None:
        return None
    exists = owned(Customer).filter(Customer.id == customer_id).first()
    if exists is None:
        raise ValidationError("Unknown customer", details={"customer_id": value})
    return customer_id


def _apply_header(job: Job, payload: dict) -> None:
    """Copy the header fields that are PRESENT in the payload onto the job."""
    for field in JOB_TEXT_FIELDS:
        if field in payload:
            setattr(job, field, _clean_text(payload[field]))

    if "date" in payload:
        job.date = parse_date_value(payload["date"], "date") or job.date
    for field in JOB_DATE_FIELDS:
        if field in payload:
            setattr(job, field, parse_date_value(payload[field], field))

    if "status" in payload:
        job.status = require_choice(payload["status"], JOB_STATUSES, "status")
    if "discount_percent" in payload:
        job.discount_percent = parse_number(payload["discount_percent"], "discount_percent")
    if "customer_id" in payload and payload["customer_id"] not in (None, ""):
        job.customer_id = _owned_customer_id(payload["customer_id"])


def _with_inventory(raw):
    """Item payload with blanks filled from the referenced inventory entry (inventory_id)."""
    if not isinstance(raw, dict) or raw.get("inventory_id") in (None, ""):
        return raw
    inventory_id = parse_optional_int(raw["inventory_id"])
    entry = owned(InventoryItem).filter(InventoryItem.id == inventory_id).first() if inventory_id else None
    if entry is None:
        raise ValidationError("Unknown inventory item", details={"inventory_id": raw["inventory_id"]})
    filled = entry.line_item_defaults()
    filled.update({key: value for key, value in raw.items() if value not in (None, "")})
    return filled


def _replace_items(job: Job, raw_items: list) -> None:
    """Full replacement: drop every existing item (measurements cascade), insert the new set."""
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    raw_items = [_with_inventory(raw) for raw in raw_items]

    if job.items:
        job.items.clear()
        db.session.flush()

    for row in prepare_line_items(raw_items):
        measurements = row.pop("measurements")
        item = JobItem(**row)
        item.measurements = [Measurement(**m) for m in measurements]
        job.items.append(item)

    job.apply_rollup(rollup_job_totals(job.items, job.discount_percent))


def _unique_ref_number() -> str:
    for _ in range(REF_NUMBER_ATTEMPTS):
        candidate = generate_ref_number()
        if not Job.query.filter_by(ref_number=candidate).first():
            return candidate
    raise ConflictError("Could not allocate a unique reference number, retry")


def _load_job(job_id: int) -> Job:
    return get_owned_or_404(Job, job_id)


# ---------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------
@jobs_bp.route("", methods=["GET"])
@login_required
def list_jobs():
    page, limit = page_args()
    q = owned(Job).outerjoin(Customer, Customer.id == Job.customer_id)

    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(
            Job.ref_number.ilike(pattern),
            func.coalesce(Job.subject, "").ilike(pattern),
            func.coalesce(Customer.name, "").ilike(pattern),
            func.coalesce(Job.work_location, "").ilike(pattern),
        ))

    status = (request.args.get("status") or "").strip()
    if status:
        q = q.filter(Job.status == require_choice(status, JOB_STATUSES, "status"))

    total = q.count()
    jobs = (
        q.options(joinedload(Job.customer), selectinload(Job.items), selectinload(Job.expenses))
        .order_by(Job.created_at.desc(), Job.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return jsonify({
        "data": [job.to_dict() for job in jobs],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    })


@jobs_bp.route("", methods=["POST"])
@login_required
def create_job():
    payload = json_payload()

    job = Job(user_id=current_user.id, status="QUOTATION", discount_percent=0)
    _apply_header(job, payload)
    job.ref_number = _clean_text(payload.get("ref_number")) or _unique_ref_number()

    db.session.add(job)
    _replace_items(job, payload.get("items") or [])

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Reference number already exists", details={"ref_number": job.ref_number}) from None

    job.resync_expenses()
    log_action(job, "CREATE", before=None, after=serialize_model(job))
    db.session.commit()
    logger.info("Job %s created with %d item(s)", job.ref_number, len(job.items))
    return jsonify(job.to_dict(include_items=True)), 201


@jobs_bp.route("/<int:job_id>", methods=["GET"])
@login_required
def get_job(job_id: int):
    return jsonify(_load_job(job_id).to_dict(include_items=True))


@jobs_bp.route("/<int:job_id>", methods=["PUT"])
@login_required
def update_job(job_id: int):
    job = _load_job(job_id)
    payload = json_payload()
    before_snapshot = serialize_model(job)

    _apply_header(job, payload)
    if "ref_number" in payload and _clean_text(payload["ref_number"]):
        job.ref_number = _clean_text(payload["ref_number"])

    items = payload.get("items")
    if items:
        _replace_items(job, items)

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Reference number already exists") from None

    job.resync_expenses()
    log_action(job, "UPDATE", before=before_snapshot, after=serialize_model(job))
    db.session.commit()
    return jsonify(job.to_dict(include_items=True))


@jobs_bp.route("/<int:job_id>", methods=["DELETE"])
@login_required
def delete_job(job_id: int):
    job = _load_job(job_id)
    before_snapshot = serialize_model(job)

    db.session.delete(job)
    db.session.flush()
    log_action(job, "DELETE", before=before_snapshot, after=None)
    db.session.commit()
    return jsonify({"ok": True})


# ---------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------
def _apply_expense(expense: JobExpense, payload: dict, *, creating: bool) -> None:
    if creating or "description" in payload:
        description = _clean_text(payload.get("description"))
        if not description:
            raise ValidationError("description is required")
        expense.description = description
    if creating or "amount" in payload:
        expense.amount = parse_number(payload.get("amount"), "amount")
    if "category" in payload or creating:
        expense.category = require_choice(payload.get("category") or "Other", EXPENSE_CATEGORIES, "category")
    if "date" in payload:
        expense.date = parse_date_value(payload["date"], "date") or expense.date
    if "notes" in payload:
        expense.notes = _clean_text(payload["notes"])


def _load_expense(job: Job, expense_id: int) -> JobExpense:
    return JobExpense.query.filter_by(id=expense_id, job_id=job.id, is_active=True).first_or_404()


@jobs_bp.route("/<int:job_id>/expenses", methods=["GET"])
@login_required
def list_expenses(job_id: int):
    job = _load_job(job_id)
    return jsonify({
        "data": [e.to_dict() for e in job.expenses if e.is_active],
        "total_expenses": job.to_dict()["total_expenses"],
    })


@jobs_bp.route("/<int:job_id>/expenses", methods=["POST"])
@login_required
def create_expense(job_id: int):
    job = _load_job(job_id)
    expense = JobExpense(is_active=True)
    _apply_expense(expense, json_payload(), creating=True)
    job.expenses.append(expense)

    db.session.flush()
    job.resync_expenses()
    log_action(expense, "CREATE", before=None, after=serialize_model(expense))
    db.session.commit()
    return jsonify({"expense": expense.to_dict(), "job": job.to_dict()}), 201


@jobs_bp.route("/<int:job_id>/expenses/<int:expense_id>", methods=["PUT"])
@login_required
def update_expense(job_id: int, expense_id: int):
    job = _load_job(job_id)
    expense = _load_expense(job, expense_id)
    before_snapshot = serialize_model(expense)

    _apply_expense(expense, json_payload(), creating=False)
    db.session.flush()
    job.resync_expenses()
    log_action(expense, "UPDATE", before=before_snapshot, after=serialize_model(expense))
    db.session.commit()
    return jsonify({"expense": expense.to_dict(), "job": job.to_dict()})


@jobs_bp.route("/<int:job_id>/expenses/<int:expense_id>", methods=["DELETE"])
@login_required
def delete_expense(job_id: int, expense_id: int):
    job = _load_job(job_id)
    expense = _load_expense(job, expense_id)
    before_snapshot = serialize_model(expense)

    expense.is_active = False
    db.session.flush()
    job.resync_expenses()
    log_action(expense, "DELETE", before=before_snapshot, after=serialize_model(expense))
    db.session.commit()
    return jsonify({"ok": True, "job": job.to_dict()})
