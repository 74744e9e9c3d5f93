"""
billing/pricing.py

Line-item calculator and the persistence-time job rollup.

calculate_line_item() is a pure function:

    subtotal        = quantity * unit_price
    discount_amount = subtotal * discount_percent / 100
    vat_amount      = 0            (VAT is excluded from item totals by business rule)
    total           = subtotal - discount_amount

IMPORTANT:
- vat_amount stays a real field. Rollups and documents still sum it, so a caller that sets it
  directly (imports, manual corrections) is honoured.
- The calculator trusts the quantity it is given. The auto-calculate sqft coupling is enforced
  one level up, in prepare_line_items(), before the calculator runs.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .measurements import calculate_sqft, has_dimensions, item_own_area, total_sqft
from .money import number_to_words, to_float

DEFAULT_UNIT = "nos"

ITEM_TEXT_FIELDS = ("work_description", "details", "sku", "sku_name")
ITEM_DIMENSION_FIELDS = ("width_feet", "width_inches", "height_feet", "height_inches")


def _value(obj, name: str, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def calculate_line_item(item) -> Dict[str, Any]:
    """
    Compute the derived money fields for one line item.

    Missing quantity / unit_price / discount_percent / vat_rate count as 0.
    Missing serial number defaults to 1, missing unit to 'nos', missing buy price to 0.
    """
    quantity = to_float(_value(item, "quantity"))
    unit_price = to_float(_value(item, "unit_price"))
    discount_percent = to_float(_value(item, "discount_percent"))
    vat_rate = to_float(_value(item, "vat_rate"))

    subtotal = quantity * unit_price
    discount_amount = subtotal * (discount_percent / 100)
    after_discount = subtotal - discount_amount
    vat_amount = 0.0

    serial_number = _value(item, "serial_number")
    return {
        "serial_number": int(to_float(serial_number)) if serial_number else 1,
        "quantity": quantity,
        "unit": _value(item, "unit") or DEFAULT_UNIT,
        "unit_price": unit_price,
        "buy_price": to_float(_value(item, "buy_price")),
        "discount_percent": discount_percent,
        "vat_rate": vat_rate,
        "subtotal": subtotal,
        "discount_amount": discount_amount,
        "vat_amount": vat_amount,
        "total": after_discount,
    }


def _prepare_measurements(raw_measurements: Iterable | None) -> List[Dict[str, Any]]:
    prepared = []
    for index, raw in enumerate(raw_measurements or []):
        measurement = {name: max(to_float(_value(raw, name)), 0.0) for name in ITEM_DIMENSION_FIELDS}
        pieces = _value(raw, "quantity")
        measurement["quantity"] = to_float(pieces) if pieces not in (None, "") else 1.0
        measurement["description"] = _value(raw, "description")
        measurement["sort_order"] = index
        measurement["calculated_sqft"] = calculate_sqft(
            measurement["width_feet"],
            measurement["width_inches"],
            measurement["height_feet"],
            measurement["height_inches"],
            measurement["quantity"],
        )
        prepared.append(measurement)
    return prepared


def prepare_line_items(raw_items: Iterable) -> List[Dict[str, Any]]:
    """
    Turn an ORDERED list of item payloads into calculated rows ready to persist.

    - serial numbers are assigned 1..N from list order (any incoming serial is ignored)
    - measurements get sort_order = their index and a computed calculated_sqft
    - calculated_sqft of the item is the sum of its measurements, or its own single-piece area
    - when auto_calculate_sqft is set and an area is available, quantity := calculated_sqft
    """
    prepared = []
    for position, raw in enumerate(raw_items, start=1):
        measurements = _prepare_measurements(_value(raw, "measurements"))
        auto_sqft = bool(_value(raw, "auto_calculate_sqft", False))

        if measurements:
            calculated_sqft = total_sqft(measurements)
        elif has_dimensions(raw):
            calculated_sqft = item_own_area(raw)
        else:
            calculated_sqft = to_float(_value(raw, "calculated_sqft")) or None

        quantity = _value(raw, "quantity")
        if auto_sqft and calculated_sqft is not None:
            quantity = calculated_sqft

        row = {name: _value(raw, name) for name in ITEM_TEXT_FIELDS}
        row["work_description"] = row["work_description"] or ""
        row.update({name: max(to_float(_value(raw, name)), 0.0) for name in ITEM_DIMENSION_FIELDS})
        row.update(calculate_line_item({
            "serial_number": position,
            "quantity": quantity,
            "unit": _value(raw, "unit"),
            "unit_price": _value(raw, "unit_price"),
            "buy_price": _value(raw, "buy_price"),
            "discount_percent": _value(raw, "discount_percent"),
            "vat_rate": _value(raw, "vat_rate"),
        }))
        row["auto_calculate_sqft"] = auto_sqft
        row["calculated_sqft"] = calculated_sqft
        row["measurements"] = measurements
        prepared.append(row)
    return prepared


def rollup_job_totals(items: Iterable, discount_percent=0) -> Dict[str, Any]:
    """
    Persistence-time job aggregates (the values written to the Job row).

        subtotal        = sum(item.subtotal)
        total_vat       = sum(item.vat_amount)
        discount_amount = subtotal * job.discount_percent / 100
        total_amount    = subtotal - discount_amount + total_vat
    """
    items = list(items)
    subtotal = sum((to_float(_value(item, "subtotal")) for item in items), 0.0)
    total_vat = sum((to_float(_value(item, "vat_amount")) for item in items), 0.0)
    discount_amount = subtotal * (to_float(discount_percent) / 100)
    total_amount = (subtotal - discount_amount) + total_vat

    return {
        "subtotal": subtotal,
        "total_vat": total_vat,
        "discount_amount": discount_amount,
        "total_amount": total_amount,
        "amount_in_words": number_to_words(total_amount),
    }

