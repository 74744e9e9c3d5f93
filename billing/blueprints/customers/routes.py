"""
billing/blueprints/customers/routes.py

Customers of the current user (JSON API).

Routes:
- GET    /api/customers              list (search, page, limit), by name
- POST   /api/customers              create
- PUT    /api/customers/<id>         update
- DELETE /api/customers/<id>         delete (jobs keep their rows, customer_id becomes NULL)
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func, or_

from ...audit import log_action, serialize_model
from ...errors import ValidationError
from ...extensions import db
from ...models import Customer, Job, Topsheet
from ...security import get_owned_or_404, owned
from ...utils import json_payload, page_args

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")

CUSTOMER_FIELDS = (
    "name",
    "contact_person",
    "email",
    "phone",
    "address",
    "address_line1",
    "address_line2",
    "location",
    "vat_number",
)


def _apply(customer: Customer, payload: dict) -> None:
    for field in CUSTOMER_FIELDS:
        if field in payload:
            value = payload[field]
            text = str(value).strip() if value is not None else ""
            setattr(customer, field, text or None)
    if not customer.name:
        raise ValidationError("name is required")


@customers_bp.route("", methods=["GET"])
@login_required
def list_customers():
    page, limit = page_args()
    q = owned(Customer)

    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(*[
            func.coalesce(getattr(Customer, field), "").ilike(pattern)
            for field in ("name", "email", "phone", "location", "address_line1", "address_line2")
        ]))

    total = q.count()
    customers = q.order_by(Customer.name.asc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify({
        "data": [c.to_dict() for c in customers],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    })


@customers_bp.route("", methods=["POST"])
@login_required
def create_customer():
    customer = Customer(user_id=current_user.id, is_active=True)
    _apply(customer, json_payload())
    db.session.add(customer)
    db.session.flush()
    log_action(customer, "CREATE", before=None, after=serialize_model(customer))
    db.session.commit()
    return jsonify(customer.to_dict()), 201


@customers_bp.route("/<int:customer_id>", methods=["PUT"])
@login_required
def update_customer(customer_id: int):
    customer = get_owned_or_404(Customer, customer_id)
    before_snapshot = serialize_model(customer)
    _apply(customer, json_payload())
    db.session.flush()
    log_action(customer, "UPDATE", before=before_snapshot, after=serialize_model(customer))
    db.session.commit()
    return jsonify(customer.to_dict())


@customers_bp.route("/<int:customer_id>", methods=["DELETE"])
@login_required
def delete_customer(customer_id: int):
    customer = get_owned_or_404(Customer, customer_id)
    before_snapshot = serialize_model(customer)

    owned(Job).filter(Job.customer_id == customer.id).update({Job.customer_id: None}, synchronize_session="fetch")
    owned(Topsheet).filter(Topsheet.customer_id == customer.id).update(
        {Topsheet.customer_id: None}, synchronize_session="fetch"
    )
    db.session.delete(customer)
    db.session.flush()
    log_action(customer, "DELETE", before=before_snapshot, after=None)
    db.session.commit()
    return jsonify({"ok": True})
