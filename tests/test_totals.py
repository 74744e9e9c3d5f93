"""Read-time recomputation on plain objects (no database)."""

from datetime import date
from types import SimpleNamespace

import pytest

from billing.totals import (
    MONTH_NAMES,
    active_expenses_total,
    dashboard_summary,
    job_expected_profit,
    job_final_total,
    topsheet_rollup,
)


def _job(totals=(), stored=0.0, expenses=(), **fields):
    fields.setdefault("date", date(2024, 3, 10))
    fields.setdefault("status", "BILL")
    fields.setdefault("id", 1)
    return SimpleNamespace(
        items=[SimpleNamespace(total=t) for t in totals],
        total_amount=stored,
        expenses=[SimpleNamespace(amount=a, is_active=active) for a, active in expenses],
        ref_number="JB-1",
        subject="Work",
        customer=None,
        **fields,
    )


def test_items_win_over_stale_stored_total():
    assert job_final_total(_job([200, 300], stored=300)) == pytest.approx(500)


def test_empty_items_fall_back_to_stored_total():
    assert job_final_total(_job([], stored=300)) == pytest.approx(300)


def test_zero_item_sum_falls_back_to_stored_total():
    assert job_final_total(_job([0, 0], stored=300)) == pytest.approx(300)


def test_expected_profit_ignores_inactive_expenses():
    job = _job([1000], expenses=[(100, True), (50, True), (9999, False)])
    assert active_expenses_total(job) == pytest.approx(150)
    assert job_expected_profit(job) == pytest.approx(850)


def test_topsheet_grand_total_uses_recomputed_job_totals():
    topsheet = SimpleNamespace(jobs=[
        _job([200, 300], stored=300, expenses=[(100, True)]),
        _job([], stored=250),
    ])
    rollup = topsheet_rollup(topsheet)
    assert rollup["grand_total"] == pytest.approx(750)
    assert rollup["total_expenses"] == pytest.approx(100)
    assert rollup["total_profit"] == pytest.approx(650)


def test_dashboard_summary_buckets_by_month():
    jobs = [
        _job([500], stored=300, expenses=[(100, True)], id=1, date=date(2024, 3, 1)),
        _job([200], id=2, date=date(2024, 7, 9), status="QUOTATION"),
        _job([999], id=3, date=date(2023, 7, 9)),
    ]
    topsheets = [
        SimpleNamespace(id=1, topsheet_number="TS-1", status="SUBMITTED", date=date(2024, 3, 31), jobs=[]),
        SimpleNamespace(id=2, topsheet_number="TS-2", status="DRAFT", date=date(2024, 3, 31), jobs=[]),
    ]
    summary = dashboard_summary(jobs, topsheets, 2024, today=date(2024, 7, 20))

    assert list(summary["monthly_profit"]) == MONTH_NAMES
    march = summary["monthly_profit"]["March"]
    assert march["revenue"] == pytest.approx(500)
    assert march["expenses"] == pytest.approx(100)
    assert march["profit"] == pytest.approx(400)
    assert [t["topsheet_number"] for t in march["topsheets"]] == ["TS-1"]
    assert len(march["all_topsheets"]) == 2

    assert summary["jobs_by_month"]["July"]["count"] == 1
    assert summary["annual"]["revenue"] == pytest.approx(700)
    assert summary["annual"]["profit"] == pytest.approx(600)
    assert summary["jobs_by_status"] == {"BILL": 1, "QUOTATION": 1}
    assert summary["current_month"]["name"] == "July"
    assert summary["topsheets_count"] == 1
    assert summary["all_topsheets_count"] == 2


def test_dashboard_summary_other_year_has_no_current_month():
    summary = dashboard_summary([], [], 2020, today=date(2024, 1, 1))
    assert summary["current_month"] is None
    assert summary["annual"]["job_count"] == 0
