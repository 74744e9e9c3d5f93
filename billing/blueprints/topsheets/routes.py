"""
billing/blueprints/topsheets/routes.py

Topsheets: batches of jobs billed together (JSON API).

Routes:
- GET    /api/topsheets          list with grand_total / total_expenses / total_profit rollups
- POST   /api/topsheets          create (number unique per user, customer snapshot, job_ids)
- GET    /api/topsheets/<id>     one topsheet with its jobs
- PUT    /api/topsheets/<id>     update; job_ids present -> disconnect all, then connect the new set
- DELETE /api/topsheets/<id>     unlink jobs, then delete

IMPORTANT:
- Job membership is a weak link (Job.topsheet_id). Deleting a topsheet never deletes jobs.
- Only the current user's jobs can be connected; foreign ids are ignored.
- Customer name/address are SNAPSHOT onto the topsheet when the customer is set.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from ...audit import log_action, serialize_model
from ...errors import ConflictError, ValidationError
from ...extensions import db
from ...models import TOPSHEET_STATUSES, Customer, Job, Topsheet
from ...security import get_owned_or_404, owned
from ...utils import json_payload, parse_date_value, parse_optional_int, require_choice

logger = logging.getLogger(__name__)

topsheets_bp = Blueprint("topsheets", __name__, url_prefix="/api/topsheets")

DEFAULT_JOB_DETAIL = "Topsheet of working at different locations of {customer}"


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _number_taken(number: str, exclude_id: int | None = None) -> bool:
    q = owned(Topsheet).filter(Topsheet.topsheet_number == number)
    if exclude_id is not None:
        q = q.filter(Topsheet.id != exclude_id)
    return q.first() is not None


def _snapshot_customer(topsheet: Topsheet, customer_id) -> None:
    customer = owned(Customer).filter(Customer.id == parse_optional_int(customer_id)).first()
    if customer is None:
        raise ValidationError("Customer not found", details={"customer_id": customer_id})
    topsheet.customer_id = customer.id
    topsheet.customer_name = customer.name
    topsheet.customer_address1 = customer.primary_address
    topsheet.customer_address2 = customer.address_line2
    topsheet.job_detail = DEFAULT_JOB_DETAIL.format(customer=customer.name)


def _job_ids(raw) -> list[int]:
    if not isinstance(raw, list):
        raise ValidationError("job_ids must be a list")
    ids = [parse_optional_int(value) for value in raw]
    return [value for value in ids if value is not None]


def _connect_jobs(topsheet: Topsheet, job_ids: list[int]) -> None:
    """Disconnect every current job, then connect the given (owned) jobs."""
    owned(Job).filter(Job.topsheet_id == topsheet.id).update(
        {Job.topsheet_id: None}, synchronize_session="fetch"
    )
    if job_ids:
        owned(Job).filter(Job.id.in_(job_ids)).update(
            {Job.topsheet_id: topsheet.id}, synchronize_session="fetch"
        )
    db.session.flush()
    db.session.expire(topsheet, ["jobs"])


def _load_topsheet(topsheet_id: int) -> Topsheet:
    return get_owned_or_404(Topsheet, topsheet_id)


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------
@topsheets_bp.route("", methods=["GET"])
@login_required
def list_topsheets():
    topsheets = (
        owned(Topsheet)
        .options(selectinload(Topsheet.jobs).selectinload(Job.items), selectinload(Topsheet.jobs).selectinload(Job.expenses))
        .order_by(Topsheet.created_at.desc(), Topsheet.id.desc())
        .all()
    )
    return jsonify({"data": [t.to_dict() for t in topsheets]})


@topsheets_bp.route("/<int:topsheet_id>", methods=["GET"])
@login_required
def get_topsheet(topsheet_id: int):
    return jsonify(_load_topsheet(topsheet_id).to_dict(include_jobs=True))


@topsheets_bp.route("", methods=["POST"])
@login_required
def create_topsheet():
    payload = json_payload()
    number = str(payload.get("topsheet_number") or "").strip()
    topsheet_date = parse_date_value(payload.get("date"), "date")
    if not number or topsheet_date is None or not payload.get("customer_id"):
        raise ValidationError("topsheet_number, date and customer_id are required")

    if _number_taken(number):
        raise ConflictError("Topsheet number already exists", details={"topsheet_number": number})

    topsheet = Topsheet(
        user_id=current_user.id,
        topsheet_number=number,
        date=topsheet_date,
        notes=payload.get("notes") or None,
        status="DRAFT",
    )
    _snapshot_customer(topsheet, payload["customer_id"])
    db.session.add(topsheet)

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Topsheet number already exists", details={"topsheet_number": number}) from None

    _connect_jobs(topsheet, _job_ids(payload.get("job_ids") or []))
    log_action(topsheet, "CREATE", before=None, after=serialize_model(topsheet))
    db.session.commit()
    return jsonify(topsheet.to_dict(include_jobs=True)), 201


@topsheets_bp.route("/<int:topsheet_id>", methods=["PUT"])
@login_required
def update_topsheet(topsheet_id: int):
    topsheet = _load_topsheet(topsheet_id)
    payload = json_payload()
    before_snapshot = serialize_model(topsheet)

    number = str(payload.get("topsheet_number") or "").strip()
    if number:
        if _number_taken(number, exclude_id=topsheet.id):
            raise ConflictError("Topsheet number already exists", details={"topsheet_number": number})
        topsheet.topsheet_number = number

    if payload.get("date"):
        topsheet.date = parse_date_value(payload["date"], "date")
    if "notes" in payload:
        topsheet.notes = payload["notes"] or None
    if payload.get("status"):
        topsheet.status = require_choice(payload["status"], TOPSHEET_STATUSES, "status")
    if payload.get("customer_id"):
        _snapshot_customer(topsheet, payload["customer_id"])

    if "job_ids" in payload and payload["job_ids"] is not None:
        _connect_jobs(topsheet, _job_ids(payload["job_ids"]))

    db.session.flush()
    log_action(topsheet, "UPDATE", before=before_snapshot, after=serialize_model(topsheet))
    db.session.commit()
    return jsonify(topsheet.to_dict(include_jobs=True))


@topsheets_bp.route("/<int:topsheet_id>", methods=["DELETE"])
@login_required
def delete_topsheet(topsheet_id: int):
    topsheet = _load_topsheet(topsheet_id)
    before_snapshot = serialize_model(topsheet)

    _connect_jobs(topsheet, [])
    db.session.delete(topsheet)
    db.session.flush()
    log_action(topsheet, "DELETE", before=before_snapshot, after=None)
    db.session.commit()
    logger.info("Topsheet %s deleted, jobs unlinked", before_snapshot["topsheet_number"])
    return jsonify({"ok": True})
