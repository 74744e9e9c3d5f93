import pytest

from billing.models import AuditLog, Job, JobExpense
from billing.money import number_to_words

from conftest import make_customer, make_expense, make_job, make_user

ITEMS = [
    {"work_description": "Glass partition", "unit": "sqft", "unit_price": 100, "auto_calculate_sqft": True,
     "measurements": [{"width_feet": 2, "width_inches": 6, "height_feet": 3, "quantity": 2}]},
    {"work_description": "Door lock", "quantity": 2, "unit_price": 250},
]


def test_requires_login(client):
    response = client.get("/api/jobs")
    assert response.status_code == 401
    assert response.get_json()["error"] == "Unauthorized"


def test_create_job_with_items(auth_client, user):
    customer = make_customer(user)
    response = auth_client.post("/api/jobs", json={
        "customer_id": customer.id,
        "subject": "Branch fit-out",
        "date": "2024-03-15",
        "discount_percent": 10,
        "items": ITEMS,
    })
    assert response.status_code == 201
    data = response.get_json()

    assert data["ref_number"].startswith("JB-")
    assert [item["serial_number"] for item in data["items"]] == [1, 2]
    assert data["items"][0]["quantity"] == pytest.approx(15)
    assert [m["sort_order"] for m in data["items"][0]["measurements"]] == [0]
    assert data["subtotal"] == pytest.approx(2000)
    assert data["discount_amount"] == pytest.approx(200)
    # reported total is the recomputed item sum (job discount is not applied at read time)
    assert data["total_amount"] == pytest.approx(2000)
    assert AuditLog.query.filter_by(entity_type="Job", action="CREATE").count() == 1


def test_amount_in_words_follows_reported_total(auth_client):
    response = auth_client.post("/api/jobs", json={
        "discount_percent": 10,
        "items": [{"work_description": "Panel", "quantity": 10, "unit_price": 100}],
    })
    data = response.get_json()

    assert data["stored_total_amount"] == pytest.approx(900)
    assert data["total_amount"] == pytest.approx(1000)
    assert data["amount_in_words"] == number_to_words(data["total_amount"]) == "One Thousand Taka Only"


def test_create_job_rejects_invalid_status(auth_client):
    response = auth_client.post("/api/jobs", json={"status": "PAID", "items": []})
    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"


def test_create_job_rejects_foreign_customer(auth_client):
    stranger = make_user("stranger")
    customer = make_customer(stranger)
    response = auth_client.post("/api/jobs", json={"customer_id": customer.id})
    assert response.status_code == 400


def test_get_job_reports_recomputed_totals(auth_client, user, db):
    job = make_job(user, items=[{"quantity": 5, "unit_price": 100}])
    job.total_amount = 300
    db.session.commit()
    make_expense(job, 100)
    make_expense(job, 50)
    make_expense(job, 9999, is_active=False)

    data = auth_client.get(f"/api/jobs/{job.id}").get_json()
    assert data["total_amount"] == pytest.approx(500)
    assert data["total_expenses"] == pytest.approx(150)
    assert data["expected_profit"] == pytest.approx(350)
    assert len(data["expenses"]) == 2


def test_other_users_job_is_not_found(auth_client):
    stranger = make_user("stranger")
    job = make_job(stranger)
    assert auth_client.get(f"/api/jobs/{job.id}").status_code == 404
    assert auth_client.delete(f"/api/jobs/{job.id}").status_code == 404


def test_status_only_update_keeps_totals(auth_client, user, db):
    job = make_job(user, items=[{"quantity": 3, "unit_price": 100}], discount_percent=5)
    before = (job.subtotal, job.total_vat, job.total_amount, job.discount_amount)
    item_ids = [item.id for item in job.items]

    response = auth_client.put(f"/api/jobs/{job.id}", json={"status": "CHALLAN", "items": []})
    assert response.status_code == 200

    db.session.expire_all()
    job = db.session.get(Job, job.id)
    assert job.status == "CHALLAN"
    assert (job.subtotal, job.total_vat, job.total_amount, job.discount_amount) == before
    assert [item.id for item in job.items] == item_ids


def test_update_with_items_replaces_them(auth_client, user, db):
    job = make_job(user, items=[{"quantity": 3, "unit_price": 100}, {"quantity": 1, "unit_price": 1}])

    response = auth_client.put(f"/api/jobs/{job.id}", json={"items": [{"quantity": 4, "unit_price": 50}]})
    assert response.status_code == 200
    data = response.get_json()
    assert len(data["items"]) == 1
    assert data["subtotal"] == pytest.approx(200)
    assert data["total_amount"] == pytest.approx(200)


def test_list_jobs_search_status_and_pagination(auth_client, user):
    customer = make_customer(user, name="Prime Bank")
    make_job(user, customer, subject="Signboard", status="BILL")
    make_job(user, subject="Flooring", work_location="Motijheel")
    make_job(make_user("stranger"), subject="Signboard elsewhere")

    data = auth_client.get("/api/jobs?search=prime").get_json()
    assert [job["subject"] for job in data["data"]] == ["Signboard"]

    data = auth_client.get("/api/jobs?search=motijheel").get_json()
    assert data["total"] == 1

    data = auth_client.get("/api/jobs?status=BILL").get_json()
    assert data["total"] == 1

    data = auth_client.get("/api/jobs?limit=1&page=2").get_json()
    assert data["total"] == 2
    assert data["total_pages"] == 2
    assert len(data["data"]) == 1


def test_delete_job_cascades(auth_client, user, db):
    job = make_job(user, items=[{"quantity": 1, "unit_price": 1, "measurements": [{"width_feet": 1, "height_feet": 1}]}])
    make_expense(job, 10)
    job_id = job.id

    assert auth_client.delete(f"/api/jobs/{job_id}").status_code == 200
    assert db.session.get(Job, job_id) is None
    assert JobExpense.query.filter_by(job_id=job_id).count() == 0


# ---------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------
def test_expense_lifecycle_resyncs_job(auth_client, user, db):
    job = make_job(user, items=[{"quantity": 10, "unit_price": 100}])

    response = auth_client.post(f"/api/jobs/{job.id}/expenses", json={
        "description": "Glass sheets", "category": "Material", "amount": 300, "date": "2024-03-16",
    })
    assert response.status_code == 201
    expense_id = response.get_json()["expense"]["id"]
    assert response.get_json()["job"]["expected_profit"] == pytest.approx(700)

    response = auth_client.put(f"/api/jobs/{job.id}/expenses/{expense_id}", json={"amount": 400})
    assert response.get_json()["job"]["total_expenses"] == pytest.approx(400)

    db.session.expire_all()
    assert db.session.get(Job, job.id).expected_profit == pytest.approx(600)

    response = auth_client.delete(f"/api/jobs/{job.id}/expenses/{expense_id}")
    assert response.status_code == 200
    db.session.expire_all()
    stored = db.session.get(Job, job.id)
    assert stored.total_expenses == 0
    assert stored.expected_profit == pytest.approx(1000)
    assert db.session.get(JobExpense, expense_id).is_active is False

    listed = auth_client.get(f"/api/jobs/{job.id}/expenses").get_json()
    assert listed["data"] == []


def test_expense_rejects_unknown_category(auth_client, user):
    job = make_job(user)
    response = auth_client.post(f"/api/jobs/{job.id}/expenses", json={
        "description": "Fuel", "category": "Fuel", "amount": 10,
    })
    assert response.status_code == 400
