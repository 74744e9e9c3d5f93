"""
Billing System – Domain Models

Entities:
- User: login owner of every tenant-scoped row
- Customer: billing party (per user)
- InventoryItem: price-list entry (per user) that pre-fills job line items
- Job: quotation -> challan -> bill unit of work, owning JobItems and JobExpenses
- JobItem / Measurement: priced rows and their width x height x pieces breakdown
- JobExpense: cost entries (soft-deleted via is_active)
- Topsheet: batch of Jobs billed together (weak link through Job.topsheet_id)
- Setting: key -> JSON value store (render settings live under "appSettings")
- AuditLog: who changed what

IMPORTANT:
- Money columns are floats at full precision; rounding is a display concern (billing/money.py).
- Aggregate columns on Job (subtotal, total_amount, total_expenses, expected_profit, ...) are
  caches. Anything that REPORTS totals goes through billing/totals.py, which recomputes from
  the children.
"""

from __future__ import annotations

import json
from datetime import date, datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db
from .money import number_to_words
from .totals import active_expenses_total, job_expected_profit, job_final_total, topsheet_rollup

JOB_STATUSES = ("QUOTATION", "CHALLAN", "BILL")
TOPSHEET_STATUSES = ("DRAFT", "SUBMITTED", "APPROVED", "COMPLETED")
EXPENSE_CATEGORIES = ("Material", "Labor", "Transport", "Other")
INVENTORY_ITEM_TYPES = ("Supply", "Service")


# ---------------------------------------------------------------------
# Users & customers
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(150), nullable=True)

    is_admin = db.Column(db.Boolean, default=False, nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.username}>"


class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    contact_person = db.Column(db.String(150))
    email = db.Column(db.String(150))
    phone = db.Column(db.String(50))
    address = db.Column(db.Text)
    address_line1 = db.Column(db.String(255))
    address_line2 = db.Column(db.String(255))
    location = db.Column(db.String(255))
    vat_number = db.Column(db.String(50))

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def primary_address(self) -> str | None:
        """First address line; falls back to the free-text address."""
        return self.address_line1 or self.address

    @property
    def address_lines(self) -> list[str]:
        """Up to two printable address lines."""
        lines = [self.primary_address, self.address_line2]
        return [line for line in lines if line]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "location": self.location,
            "vat_number": self.vat_number,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Customer {self.name}>"


class InventoryItem(db.Model):
    """Price-list entry (per user). Line items copy sku, name and prices from it when created."""

    __tablename__ = "inventory_items"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    sku = db.Column(db.String(100), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    details = db.Column(db.Text)
    unit = db.Column(db.String(30), nullable=False, default="nos")
    item_type = db.Column(db.String(20), nullable=False, default="Supply", index=True)

    vat_rate = db.Column(db.Float, nullable=False, default=0)
    buy_price = db.Column(db.Float, nullable=False, default=0)
    standard_price = db.Column(db.Float, nullable=False, default=0)
    discounted_price = db.Column(db.Float, nullable=False, default=0)

    stock_quantity = db.Column(db.Float, nullable=False, default=0)
    min_stock = db.Column(db.Float, nullable=False, default=0)

    category = db.Column(db.String(100))
    brand = db.Column(db.String(100))
    remarks = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "sku", name="uq_inventory_sku_per_user"),
    )

    @property
    def effective_price(self) -> float:
        """Discounted price when one is set, else the standard price."""
        if self.discounted_price and self.discounted_price > 0:
            return self.discounted_price
        return self.standard_price or 0

    def line_item_defaults(self) -> dict:
        """Item payload fields a job line takes from this entry."""
        return {
            "work_description": self.name,
            "details": self.details or "",
            "quantity": 1,
            "unit": self.unit,
            "sku": self.sku,
            "sku_name": self.name,
            "unit_price": self.effective_price,
            "buy_price": self.buy_price,
            "vat_rate": self.vat_rate,
            "discount_percent": 0,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "details": self.details,
            "unit": self.unit,
            "item_type": self.item_type,
            "vat_rate": self.vat_rate,
            "buy_price": self.buy_price,
            "standard_price": self.standard_price,
            "discounted_price": self.discounted_price,
            "effective_price": self.effective_price,
            "stock_quantity": self.stock_quantity,
            "min_stock": self.min_stock,
            "category": self.category,
            "brand": self.brand,
            "remarks": self.remarks,
        }

    def __repr__(self):
        return f"<InventoryItem {self.sku}>"


# ---------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------
class Job(db.Model):
    """One billable unit of work (status is caller-driven: QUOTATION -> CHALLAN -> BILL)."""

    __tablename__ = "jobs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    ref_number = db.Column(db.String(50), nullable=False, unique=True, index=True)
    subject = db.Column(db.String(255))
    job_detail = db.Column(db.Text)
    work_location = db.Column(db.String(255))

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    topsheet_id = db.Column(db.Integer, db.ForeignKey("topsheets.id", ondelete="SET NULL"), index=True)

    date = db.Column(db.Date, nullable=False, default=date.today, index=True)
    status = db.Column(db.String(20), nullable=False, default="QUOTATION", index=True)

    # Milestones
    quotation_date = db.Column(db.Date)
    challan_date = db.Column(db.Date)
    bill_date = db.Column(db.Date)
    bill_number = db.Column(db.String(50))
    bbl_bill_number = db.Column(db.String(50))
    challan_number = db.Column(db.String(50))

    discount_percent = db.Column(db.Float, nullable=False, default=0)

    notes = db.Column(db.Text)
    terms_conditions = db.Column(db.Text)

    # Cached aggregates (see billing/totals.py for the authoritative values)
    subtotal = db.Column(db.Float, nullable=False, default=0)
    total_vat = db.Column(db.Float, nullable=False, default=0)
    discount_amount = db.Column(db.Float, nullable=False, default=0)
    total_amount = db.Column(db.Float, nullable=False, default=0)
    amount_in_words = db.Column(db.String(500))
    total_expenses = db.Column(db.Float, nullable=False, default=0)
    expected_profit = db.Column(db.Float, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = db.relationship("Customer", backref=db.backref("jobs", lazy=True))
    topsheet = db.relationship("Topsheet", back_populates="jobs")

    items = db.relationship(
        "JobItem",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobItem.serial_number",
    )
    expenses = db.relationship(
        "JobExpense",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobExpense.created_at",
    )

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else ""

    def apply_rollup(self, rollup: dict):
        """Write persistence-time aggregates (pricing.rollup_job_totals) onto the row."""
        for field in ("subtotal", "total_vat", "discount_amount", "total_amount", "amount_in_words"):
            setattr(self, field, rollup[field])

    def resync_expenses(self):
        """Refresh the cached expense / profit columns from live children."""
        self.total_expenses = active_expenses_total(self)
        self.expected_profit = job_expected_profit(self)

    def to_dict(self, include_items: bool = False) -> dict:
        total = job_final_total(self)
        data = {
            "id": self.id,
            "ref_number": self.ref_number,
            "subject": self.subject,
            "job_detail": self.job_detail,
            "work_location": self.work_location,
            "customer_id": self.customer_id,
            "customer": self.customer.to_dict() if self.customer else None,
            "topsheet_id": self.topsheet_id,
            "date": _iso(self.date),
            "status": self.status,
            "quotation_date": _iso(self.quotation_date),
            "challan_date": _iso(self.challan_date),
            "bill_date": _iso(self.bill_date),
            "bill_number": self.bill_number,
            "bbl_bill_number": self.bbl_bill_number,
            "challan_number": self.challan_number,
            "discount_percent": self.discount_percent,
            "notes": self.notes,
            "terms_conditions": self.terms_conditions,
            # Breakdown stored by the last item save.
            "subtotal": self.subtotal,
            "total_vat": self.total_vat,
            "discount_amount": self.discount_amount,
            "stored_total_amount": self.total_amount,
            # Reported totals are recomputed, never read back from the cache columns.
            "total_amount": total,
            "amount_in_words": number_to_words(total),
            "total_expenses": active_expenses_total(self),
            "expected_profit": job_expected_profit(self),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["expenses"] = [e.to_dict() for e in self.expenses if e.is_active]
        return data

    def __repr__(self):
        return f"<Job {self.ref_number}>"


class JobItem(db.Model):
    __tablename__ = "job_items"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)

    serial_number = db.Column(db.Integer, nullable=False, default=1)
    sku = db.Column(db.String(100))
    sku_name = db.Column(db.String(255))
    work_description = db.Column(db.Text, nullable=False, default="")
    details = db.Column(db.Text)

    quantity = db.Column(db.Float, nullable=False, default=0)
    unit = db.Column(db.String(30), nullable=False, default="nos")
    unit_price = db.Column(db.Float, nullable=False, default=0)
    buy_price = db.Column(db.Float, nullable=False, default=0)
    discount_percent = db.Column(db.Float, nullable=False, default=0)
    vat_rate = db.Column(db.Float, nullable=False, default=0)

    subtotal = db.Column(db.Float, nullable=False, default=0)
    discount_amount = db.Column(db.Float, nullable=False, default=0)
    vat_amount = db.Column(db.Float, nullable=False, default=0)
    total = db.Column(db.Float, nullable=False, default=0)

    width_feet = db.Column(db.Float, default=0)
    width_inches = db.Column(db.Float, default=0)
    height_feet = db.Column(db.Float, default=0)
    height_inches = db.Column(db.Float, default=0)
    calculated_sqft = db.Column(db.Float)
    auto_calculate_sqft = db.Column(db.Boolean, nullable=False, default=False)

    job = db.relationship("Job", back_populates="items")
    measurements = db.relationship(
        "Measurement",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="Measurement.sort_order",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "serial_number": self.serial_number,
            "sku": self.sku,
            "sku_name": self.sku_name,
            "work_description": self.work_description,
            "details": self.details,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price": self.unit_price,
            "buy_price": self.buy_price,
            "discount_percent": self.discount_percent,
            "vat_rate": self.vat_rate,
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "vat_amount": self.vat_amount,
            "total": self.total,
            "width_feet": self.width_feet,
            "width_inches": self.width_inches,
            "height_feet": self.height_feet,
            "height_inches": self.height_inches,
            "calculated_sqft": self.calculated_sqft,
            "auto_calculate_sqft": self.auto_calculate_sqft,
            "measurements": [m.to_dict() for m in self.measurements],
        }


class Measurement(db.Model):
    __tablename__ = "measurements"

    id = db.Column(db.Integer, primary_key=True)
    job_item_id = db.Column(
        db.Integer,
        db.ForeignKey("job_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    width_feet = db.Column(db.Float, nullable=False, default=0)
    width_inches = db.Column(db.Float, nullable=False, default=0)
    height_feet = db.Column(db.Float, nullable=False, default=0)
    height_inches = db.Column(db.Float, nullable=False, default=0)
    quantity = db.Column(db.Float, nullable=False, default=1)
    calculated_sqft = db.Column(db.Float, nullable=False, default=0)
    description = db.Column(db.String(255))
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    item = db.relationship("JobItem", back_populates="measurements")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "width_feet": self.width_feet,
            "width_inches": self.width_inches,
            "height_feet": self.height_feet,
            "height_inches": self.height_inches,
            "quantity": self.quantity,
            "calculated_sqft": self.calculated_sqft,
            "description": self.description,
            "sort_order": self.sort_order,
        }


class JobExpense(db.Model):
    """Cost entry against a Job. Deleting sets is_active=False (kept for audit)."""

    __tablename__ = "job_expenses"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.Integer, db.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(20), nullable=False, default="Other")
    amount = db.Column(db.Float, nullable=False, default=0)
    date = db.Column(db.Date, nullable=False, default=date.today)
    notes = db.Column(db.Text)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    job = db.relationship("Job", back_populates="expenses")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "description": self.description,
            "category": self.category,
            "amount": self.amount,
            "date": _iso(self.date),
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
        }


# ---------------------------------------------------------------------
# Topsheets
# ---------------------------------------------------------------------
class Topsheet(db.Model):
    """Batch of jobs billed together. Customer fields are a snapshot taken at creation."""

    __tablename__ = "topsheets"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    topsheet_number = db.Column(db.String(50), nullable=False)
    date = db.Column(db.Date, nullable=False, default=date.today)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_address1 = db.Column(db.String(255))
    customer_address2 = db.Column(db.String(255))

    job_detail = db.Column(db.Text)
    notes = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="DRAFT", index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = db.relationship("Customer")
    jobs = db.relationship("Job", back_populates="topsheet", order_by="Job.date")

    __table_args__ = (
        db.UniqueConstraint("user_id", "topsheet_number", name="uq_topsheet_number_per_user"),
    )

    def to_dict(self, include_jobs: bool = False) -> dict:
        data = {
            "id": self.id,
            "topsheet_number": self.topsheet_number,
            "date": _iso(self.date),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_address1": self.customer_address1,
            "customer_address2": self.customer_address2,
            "job_detail": self.job_detail,
            "notes": self.notes,
            "status": self.status,
            "job_count": len(self.jobs),
            **topsheet_rollup(self),
        }
        if include_jobs:
            data["jobs"] = [job.to_dict() for job in self.jobs]
        return data

    def __repr__(self):
        return f"<Topsheet {self.topsheet_number}>"


# ---------------------------------------------------------------------
# Settings & audit
# ---------------------------------------------------------------------
class Setting(db.Model):
    """Key -> JSON value."""

    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), nullable=False, unique=True, index=True)
    value = db.Column(db.Text, nullable=False, default="{}")
    description = db.Column(db.String(255))

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def data(self):
        return json.loads(self.value) if self.value else None

    @data.setter
    def data(self, payload):
        self.value = json.dumps(payload, ensure_ascii=False)

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.data, "description": self.description}


class AuditLog(db.Model):
    """Who changed which entity, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)


def _iso(value) -> str | None:
    return value.isoformat() if value else None
