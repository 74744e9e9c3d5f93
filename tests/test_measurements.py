import pytest

from billing.formatting import format_date
from billing.measurements import (
    calculate_sqft,
    format_dimension,
    format_measurement,
    measurement_lines,
    total_sqft,
)


def test_calculate_sqft_feet_and_inches():
    # 2'6" x 3' x 2 pieces
    assert calculate_sqft(2, 6, 3, 0, 2) == pytest.approx(15.0)


def test_calculate_sqft_defaults_to_one_piece():
    assert calculate_sqft(10, 0, 10, 0, None) == pytest.approx(100.0)


def test_calculate_sqft_negative_dimensions_count_as_zero():
    assert calculate_sqft(-5, 0, 10, 0) == 0.0
    assert calculate_sqft(5, -6, 2, 0) == pytest.approx(10.0)


def test_format_dimension_skips_zero_parts():
    assert format_dimension(2, 6) == "2'6\""
    assert format_dimension(0, 8) == "8\""
    assert format_dimension(3, 0) == "3'"
    assert format_dimension(0, 0) == ""


def test_format_measurement_fragment():
    m = {"width_feet": 2, "width_inches": 6, "height_feet": 3, "height_inches": 0, "quantity": 2}
    assert format_measurement(m) == "2'6\" x 3' (2 pcs) = 15.00 sft"


def test_format_measurement_all_zero():
    m = {"width_feet": 0, "width_inches": 0, "height_feet": 0, "height_inches": 0, "quantity": 1}
    assert format_measurement(m) == "(1 pcs) = 0.00 sft"


def test_measurement_lines_follow_sort_order_and_ignore_stored_area():
    item = {
        "measurements": [
            {"width_feet": 1, "height_feet": 1, "quantity": 1, "sort_order": 1, "calculated_sqft": 999},
            {"width_feet": 2, "height_feet": 2, "quantity": 1, "sort_order": 0, "calculated_sqft": 999},
        ]
    }
    assert measurement_lines(item) == [
        "2' x 2' (1 pcs) = 4.00 sft",
        "1' x 1' (1 pcs) = 1.00 sft",
    ]
    assert total_sqft(item["measurements"]) == pytest.approx(5.0)


def test_format_date_styles():
    assert format_date("2024-03-05") == "05/03/2024"
    assert format_date("2024-03-05", style="US") == "03/05/2024"
    assert format_date("2024-03-05T10:00:00Z", show_prefix=True) == "Date: 05/03/2024"
    assert format_date(None) == "N/A"
