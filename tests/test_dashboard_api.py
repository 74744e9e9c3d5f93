from datetime import date

import pytest

from conftest import make_customer, make_expense, make_job, make_topsheet, make_user


def test_dashboard_recomputes_from_items(auth_client, user, db):
    customer = make_customer(user)
    march = make_job(user, customer, items=[{"quantity": 5, "unit_price": 100}], date=date(2024, 3, 10))
    march.total_amount = 300
    db.session.commit()
    make_expense(march, 100)
    make_expense(march, 40, is_active=False)
    make_job(user, items=[{"quantity": 2, "unit_price": 100}], date=date(2024, 7, 1), status="BILL")
    make_job(user, items=[{"quantity": 1, "unit_price": 999}], date=date(2023, 7, 1))
    make_job(make_user("stranger"), items=[{"quantity": 1, "unit_price": 5000}], date=date(2024, 3, 1))
    make_topsheet(user, customer, jobs=[march], status="SUBMITTED", date=date(2024, 3, 31))

    response = auth_client.get("/api/dashboard?year=2024")
    assert response.status_code == 200
    data = response.get_json()

    assert data["year"] == 2024
    assert data["monthly_profit"]["March"]["revenue"] == pytest.approx(500)
    assert data["monthly_profit"]["March"]["expenses"] == pytest.approx(100)
    assert data["monthly_profit"]["March"]["profit"] == pytest.approx(400)
    assert [t["topsheet_number"] for t in data["monthly_profit"]["March"]["topsheets"]] == ["TS-001"]
    assert data["jobs_by_month"]["July"]["count"] == 1
    assert data["annual"]["revenue"] == pytest.approx(700)
    assert data["annual"]["profit"] == pytest.approx(600)
    assert data["jobs_by_status"] == {"BILL": 1, "QUOTATION": 1}


def test_dashboard_empty_year(auth_client):
    data = auth_client.get("/api/dashboard?year=2001").get_json()
    assert data["annual"]["revenue"] == 0
    assert data["current_month"] is None


@pytest.mark.parametrize("year", ["99999", "-5"])
def test_dashboard_year_out_of_range(auth_client, year):
    response = auth_client.get(f"/api/dashboard?year={year}")
    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationError"
