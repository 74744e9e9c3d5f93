"""
Shared pytest fixtures: application, clients and small model factories.
"""

from __future__ import annotations

from datetime import date

import pytest

from billing import create_app
from billing.extensions import db as _db
from billing.models import Customer, InventoryItem, Job, JobExpense, JobItem, Measurement, Topsheet, User
from billing.pricing import prepare_line_items, rollup_job_totals


@pytest.fixture
def app():
    app = create_app("config.TestingConfig")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(db):
    return make_user("owner", is_admin=False)


@pytest.fixture
def admin(db):
    return make_user("admin", is_admin=True)


@pytest.fixture
def auth_client(client, user):
    response = client.post("/auth/login", json={"username": "owner", "password": "secret"})
    assert response.status_code == 200
    return client


@pytest.fixture
def admin_client(app, admin):
    client = app.test_client()
    response = client.post("/auth/login", json={"username": "admin", "password": "secret"})
    assert response.status_code == 200
    return client


# ---------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------
def make_user(username: str, password: str = "secret", is_admin: bool = False) -> User:
    user = User(username=username, name=username.title(), is_admin=is_admin, is_active=True)
    user.set_password(password)
    _db.session.add(user)
    _db.session.commit()
    return user


def make_customer(user: User, name: str = "Dhaka Bank Ltd", **fields) -> Customer:
    customer = Customer(
        user_id=user.id,
        name=name,
        address_line1=fields.pop("address_line1", "House 12, Road 5"),
        address_line2=fields.pop("address_line2", "Gulshan, Dhaka"),
        email=fields.pop("email", "accounts@example.com"),
        **fields,
    )
    _db.session.add(customer)
    _db.session.commit()
    return customer


def make_inventory_item(user: User, sku: str = "GL-12", **fields) -> InventoryItem:
    item = InventoryItem(
        user_id=user.id,
        sku=sku,
        name=fields.pop("name", "Glass 12mm"),
        unit=fields.pop("unit", "sqft"),
        item_type=fields.pop("item_type", "Supply"),
        vat_rate=fields.pop("vat_rate", 5),
        buy_price=fields.pop("buy_price", 80),
        standard_price=fields.pop("standard_price", 120),
        discounted_price=fields.pop("discounted_price", 110),
        **fields,
    )
    _db.session.add(item)
    _db.session.commit()
    return item


def make_job(user: User, customer: Customer | None = None, items=None, **fields) -> Job:
    """Persist a job the way the API does: prepared items + rollup."""
    job = Job(
        user_id=user.id,
        customer_id=customer.id if customer else None,
        ref_number=fields.pop("ref_number", f"JB-202403-{Job.query.count() + 1:03d}"),
        date=fields.pop("date", date(2024, 3, 15)),
        status=fields.pop("status", "QUOTATION"),
        discount_percent=fields.pop("discount_percent", 0),
        **fields,
    )
    for row in prepare_line_items(items or []):
        measurements = row.pop("measurements")
        item = JobItem(**row)
        item.measurements = [Measurement(**m) for m in measurements]
        job.items.append(item)
    job.apply_rollup(rollup_job_totals(job.items, job.discount_percent))
    _db.session.add(job)
    _db.session.commit()
    return job


def make_expense(job: Job, amount: float, *, is_active: bool = True, category: str = "Material") -> JobExpense:
    expense = JobExpense(job_id=job.id, description="Expense", category=category, amount=amount, is_active=is_active)
    _db.session.add(expense)
    _db.session.commit()
    return expense


def make_topsheet(user: User, customer: Customer, jobs=(), number: str = "TS-001", **fields) -> Topsheet:
    topsheet = Topsheet(
        user_id=user.id,
        topsheet_number=number,
        date=fields.pop("date", date(2024, 3, 31)),
        customer_id=customer.id,
        customer_name=customer.name,
        customer_address1=customer.address_line1,
        customer_address2=customer.address_line2,
        status=fields.pop("status", "DRAFT"),
        **fields,
    )
    _db.session.add(topsheet)
    _db.session.flush()
    for job in jobs:
        job.topsheet_id = topsheet.id
    _db.session.commit()
    _db.session.refresh(topsheet)
    return topsheet
