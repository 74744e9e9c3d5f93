"""
billing/blueprints/inventory/routes.py

Inventory price list of the current user (JSON API).

Routes:
- GET    /api/inventory                   list (search, type, page, limit), by SKU
- POST   /api/inventory                   create (JSON) or bulk import (text/csv or text/plain body)
- GET    /api/inventory/export.csv        whole list as CSV
- GET    /api/inventory/<id>              one item
- GET    /api/inventory/<id>/line-item    job line-item payload pre-filled from the item
- PUT    /api/inventory/<id>              update
- DELETE /api/inventory/<id>              delete (job items keep their copied sku / prices)

IMPORTANT:
- SKU is unique per user: JSON create/update answers 409, CSV import skips duplicates
  (already stored, or repeated inside the file) and reports how many were skipped.
"""

from __future__ import annotations

import io
import logging

from flask import Blueprint, jsonify, request, send_file
from flask_login import current_user, login_required
from sqlalchemy import func, or_

from ...audit import log_action, serialize_model
from ...errors import ConflictError, ValidationError
from ...extensions import db
from ...inventory import inventory_to_csv, parse_inventory_csv
from ...models import INVENTORY_ITEM_TYPES, InventoryItem
from ...security import get_owned_or_404, owned
from ...utils import json_payload, page_args, parse_number, require_choice

logger = logging.getLogger(__name__)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

INVENTORY_PAGE_SIZE = 50
CSV_MIMETYPES = ("text/csv", "text/plain")

TEXT_FIELDS = ("sku", "name", "details", "unit", "category", "brand", "remarks")
NUMBER_FIELDS = ("vat_rate", "buy_price", "standard_price", "discounted_price", "stock_quantity", "min_stock")


def _sku_taken(sku: str) -> bool:
    return owned(InventoryItem).filter(InventoryItem.sku == sku).first() is not None


def _apply(item: InventoryItem, payload: dict) -> None:
    # SKU uniqueness is checked before any attribute is written (queries autoflush).
    if "sku" in payload:
        sku = str(payload["sku"] or "").strip()
        if sku and sku != item.sku and _sku_taken(sku):
            raise ConflictError("SKU already exists", details={"sku": sku})

    for field in TEXT_FIELDS:
        if field in payload:
            value = payload[field]
            text = str(value).strip() if value is not None else ""
            setattr(item, field, text or None)
    for field in NUMBER_FIELDS:
        if field in payload:
            setattr(item, field, parse_number(payload[field], field))
    if "item_type" in payload:
        item.item_type = require_choice(payload["item_type"], INVENTORY_ITEM_TYPES, "item_type")

    item.unit = item.unit or "nos"
    if not item.sku or not item.name:
        raise ValidationError("sku and name are required")


def _import_csv():
    rows = parse_inventory_csv(request.get_data(as_text=True))
    if not rows:
        raise ValidationError("No valid items found in CSV")

    taken = {sku for (sku,) in owned(InventoryItem).with_entities(InventoryItem.sku)}
    created = []
    for row in rows:
        if row["sku"] in taken:
            continue
        taken.add(row["sku"])
        item = InventoryItem(user_id=current_user.id, **row)
        db.session.add(item)
        created.append(item)

    db.session.flush()
    for item in created:
        log_action(item, "CREATE", before=None, after=serialize_model(item))
    db.session.commit()

    skipped = len(rows) - len(created)
    logger.info("Inventory import: %d created, %d skipped", len(created), skipped)
    return jsonify({"count": len(created), "skipped": skipped}), 201


# ---------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------
@inventory_bp.route("", methods=["GET"])
@login_required
def list_inventory():
    page, limit = page_args(INVENTORY_PAGE_SIZE)
    q = owned(InventoryItem)

    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(*[
            func.coalesce(getattr(InventoryItem, field), "").ilike(pattern)
            for field in ("sku", "name", "details")
        ]))

    item_type = (request.args.get("type") or "").strip()
    if item_type:
        q = q.filter(InventoryItem.item_type == item_type)

    total = q.count()
    items = q.order_by(InventoryItem.sku.asc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify({
        "data": [item.to_dict() for item in items],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    })


@inventory_bp.route("", methods=["POST"])
@login_required
def create_inventory_item():
    if request.mimetype in CSV_MIMETYPES:
        return _import_csv()

    item = InventoryItem(user_id=current_user.id)
    _apply(item, json_payload())
    db.session.add(item)
    db.session.flush()
    log_action(item, "CREATE", before=None, after=serialize_model(item))
    db.session.commit()
    return jsonify(item.to_dict()), 201


@inventory_bp.route("/export.csv", methods=["GET"])
@login_required
def export_inventory():
    items = owned(InventoryItem).order_by(InventoryItem.sku.asc()).all()
    data = inventory_to_csv(items).encode("utf-8")
    return send_file(io.BytesIO(data), mimetype="text/csv", as_attachment=True, download_name="inventory.csv")


@inventory_bp.route("/<int:item_id>", methods=["GET"])
@login_required
def get_inventory_item(item_id: int):
    return jsonify(get_owned_or_404(InventoryItem, item_id).to_dict())


@inventory_bp.route("/<int:item_id>/line-item", methods=["GET"])
@login_required
def inventory_line_item(item_id: int):
    return jsonify(get_owned_or_404(InventoryItem, item_id).line_item_defaults())


@inventory_bp.route("/<int:item_id>", methods=["PUT"])
@login_required
def update_inventory_item(item_id: int):
    item = get_owned_or_404(InventoryItem, item_id)
    before_snapshot = serialize_model(item)
    _apply(item, json_payload())
    db.session.flush()
    log_action(item, "UPDATE", before=before_snapshot, after=serialize_model(item))
    db.session.commit()
    return jsonify(item.to_dict())


@inventory_bp.route("/<int:item_id>", methods=["DELETE"])
@login_required
def delete_inventory_item(item_id: int):
    item = get_owned_or_404(InventoryItem, item_id)
    before_snapshot = serialize_model(item)
    db.session.delete(item)
    db.session.flush()
    log_action(item, "DELETE", before=before_snapshot, after=None)
    db.session.commit()
    return jsonify({"ok": True})
