"""
billing/measurements.py

Measurement engine: feet/inches width x height (x pieces) -> square feet.

    sqft = (width_feet + width_inches / 12) * (height_feet + height_inches / 12) * pieces

Rules:
- Negative or missing feet/inches contribute 0 (never raise on draft data).
- Missing piece count means 1 piece.
- Area is returned at full precision; round only when displaying.

Works on anything exposing width_feet / width_inches / height_feet / height_inches / quantity
attributes (Measurement and JobItem rows, or plain dicts via _value()).
"""

from __future__ import annotations

from typing import Iterable

from .money import to_float

SQFT_UNIT = "sqft"


def _value(obj, name: str):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _non_negative(value) -> float:
    return max(to_float(value), 0.0)


def _pieces(value) -> float:
    if value is None or value == "":
        return 1.0
    return _non_negative(value)


def _number_text(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


# ---------------------------------------------------------------------
# Area
# ---------------------------------------------------------------------
def to_feet(feet, inches) -> float:
    return _non_negative(feet) + _non_negative(inches) / 12


def calculate_sqft(width_feet=0, width_inches=0, height_feet=0, height_inches=0, quantity=1) -> float:
    """Area of `quantity` identical pieces, full precision."""
    width = to_feet(width_feet, width_inches)
    height = to_feet(height_feet, height_inches)
    return width * height * _pieces(quantity)


def measurement_area(measurement) -> float:
    """Recompute one measurement's area from its dimensions (stored calculated_sqft is ignored)."""
    return calculate_sqft(
        _value(measurement, "width_feet"),
        _value(measurement, "width_inches"),
        _value(measurement, "height_feet"),
        _value(measurement, "height_inches"),
        _value(measurement, "quantity"),
    )


def item_own_area(item) -> float:
    """Single-piece area from the item's own width/height fields."""
    return calculate_sqft(
        _value(item, "width_feet"),
        _value(item, "width_inches"),
        _value(item, "height_feet"),
        _value(item, "height_inches"),
        1,
    )


def has_dimensions(obj) -> bool:
    return any(
        _non_negative(_value(obj, name)) > 0
        for name in ("width_feet", "width_inches", "height_feet", "height_inches")
    )


def ordered_measurements(item) -> list:
    measurements = _value(item, "measurements") or []
    return sorted(measurements, key=lambda m: to_float(_value(m, "sort_order")))


def total_sqft(measurements: Iterable) -> float:
    return sum((measurement_area(m) for m in measurements), 0.0)


# ---------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------
def format_dimension(feet, inches) -> str:
    """
    2, 6 -> 2'6"   |   0, 8 -> 8"   |   3, 0 -> 3'   |   0, 0 -> ''

    A zero feet value is never printed (no stray 0').
    """
    feet_value = _non_negative(feet)
    inches_value = _non_negative(inches)

    text = ""
    if feet_value > 0:
        text += f"{_number_text(feet_value)}'"
    if inches_value > 0:
        text += f'{_number_text(inches_value)}"'
    return text


def format_measurement(measurement) -> str:
    """
    Compact fragment: 2'6" x 3' (2 pcs) = 15.00 sft

    An all-zero measurement degrades to just: (1 pcs) = 0.00 sft
    """
    width = format_dimension(_value(measurement, "width_feet"), _value(measurement, "width_inches"))
    height = format_dimension(_value(measurement, "height_feet"), _value(measurement, "height_inches"))
    pieces = _pieces(_value(measurement, "quantity"))

    tail = f"({_number_text(pieces)} pcs) = {measurement_area(measurement):.2f} sft"
    if not width and not height:
        return tail
    return f"{width or '0'} x {height or '0'} {tail}"


def measurement_lines(item) -> list[str]:
    """One fragment per measurement, in sort order."""
    return [format_measurement(m) for m in ordered_measurements(item)]
