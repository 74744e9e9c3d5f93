import pytest

from billing.models import Job, Topsheet

from conftest import make_customer, make_expense, make_job, make_topsheet, make_user


@pytest.fixture
def customer(user):
    return make_customer(user)


@pytest.fixture
def jobs(user, customer, db):
    first = make_job(user, customer, items=[{"quantity": 5, "unit_price": 100}], subject="Partition")
    second = make_job(user, customer, subject="Signboard")
    second.total_amount = 300
    db.session.commit()
    make_expense(first, 120)
    return first, second


def test_create_topsheet_snapshots_customer_and_connects_jobs(auth_client, customer, jobs):
    first, second = jobs
    response = auth_client.post("/api/topsheets", json={
        "topsheet_number": "TS-001",
        "date": "2024-03-31",
        "customer_id": customer.id,
        "job_ids": [first.id, second.id],
    })
    assert response.status_code == 201
    data = response.get_json()

    assert data["customer_name"] == "Dhaka Bank Ltd"
    assert data["customer_address1"] == "House 12, Road 5"
    assert data["job_detail"] == "Topsheet of working at different locations of Dhaka Bank Ltd"
    assert data["status"] == "DRAFT"
    assert data["job_count"] == 2
    assert data["grand_total"] == pytest.approx(800)
    assert data["total_expenses"] == pytest.approx(120)
    assert data["total_profit"] == pytest.approx(680)


def test_topsheet_snapshot_uses_free_text_address(auth_client, user):
    customer = make_customer(user, name="Walk-in", address="Motijheel C/A", address_line1=None)
    response = auth_client.post("/api/topsheets", json={
        "topsheet_number": "TS-002",
        "date": "2024-04-30",
        "customer_id": customer.id,
    })
    data = response.get_json()
    assert data["customer_address1"] == "Motijheel C/A"
    assert data["customer_address2"] == "Gulshan, Dhaka"


def test_create_topsheet_requires_fields(auth_client, customer):
    response = auth_client.post("/api/topsheets", json={"topsheet_number": "TS-9", "customer_id": customer.id})
    assert response.status_code == 400


def test_duplicate_topsheet_number_conflicts(auth_client, user, customer):
    make_topsheet(user, customer, number="TS-001")
    response = auth_client.post("/api/topsheets", json={
        "topsheet_number": "TS-001", "date": "2024-04-01", "customer_id": customer.id,
    })
    assert response.status_code == 409
    assert response.get_json()["error"] == "ConflictError"


def test_foreign_jobs_are_not_connected(auth_client, customer, jobs):
    stranger = make_user("stranger")
    foreign = make_job(stranger)
    response = auth_client.post("/api/topsheets", json={
        "topsheet_number": "TS-002",
        "date": "2024-03-31",
        "customer_id": customer.id,
        "job_ids": [jobs[0].id, foreign.id],
    })
    assert response.status_code == 201
    assert response.get_json()["job_count"] == 1


def test_update_replaces_job_membership(auth_client, user, customer, jobs, db):
    first, second = jobs
    topsheet = make_topsheet(user, customer, jobs=[first])

    response = auth_client.put(f"/api/topsheets/{topsheet.id}", json={"job_ids": [second.id], "status": "SUBMITTED"})
    assert response.status_code == 200
    data = response.get_json()
    assert [job["id"] for job in data["jobs"]] == [second.id]
    assert data["status"] == "SUBMITTED"

    db.session.expire_all()
    assert db.session.get(Job, first.id).topsheet_id is None
    assert db.session.get(Job, second.id).topsheet_id == topsheet.id


def test_update_without_job_ids_keeps_membership(auth_client, user, customer, jobs):
    topsheet = make_topsheet(user, customer, jobs=jobs)
    response = auth_client.put(f"/api/topsheets/{topsheet.id}", json={"notes": "Submitted by hand"})
    assert response.get_json()["job_count"] == 2


def test_delete_topsheet_unlinks_jobs(auth_client, user, customer, jobs, db):
    topsheet = make_topsheet(user, customer, jobs=jobs)
    topsheet_id = topsheet.id

    assert auth_client.delete(f"/api/topsheets/{topsheet_id}").status_code == 200
    db.session.expire_all()
    assert db.session.get(Topsheet, topsheet_id) is None
    assert [db.session.get(Job, job.id).topsheet_id for job in jobs] == [None, None]


def test_list_topsheets_is_scoped(auth_client, user, customer):
    make_topsheet(user, customer, number="TS-1")
    stranger = make_user("stranger")
    make_topsheet(stranger, make_customer(stranger), number="TS-1")

    data = auth_client.get("/api/topsheets").get_json()["data"]
    assert [t["topsheet_number"] for t in data] == ["TS-1"]
