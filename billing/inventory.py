"""
billing/inventory.py

CSV import / export for the inventory price list (pandas).

Import is lenient about headers: they are matched case-insensitively against the aliases in
CSV_ALIASES, unknown columns are ignored, and a missing value falls back per field:

    sku   -> SKU-0001, SKU-0002, ... (by data row)
    name  -> the row's first cell, then "Item N"
    unit  -> nos,  type -> Supply,  numbers -> 0

NOTE:
- A file with fewer than 4 columns carries no usable rows and yields [].
- Numbers accept thousands separators ("1,250.50"); anything unparsable counts as 0.
- Duplicate handling (existing SKUs, repeats inside the file) is the caller's job.
"""

from __future__ import annotations

import io
from typing import Any, Dict, Iterable, List

import pandas as pd

from .errors import ValidationError
from .models import INVENTORY_ITEM_TYPES

MIN_CSV_COLUMNS = 4

CSV_ALIASES = {
    "sku": ("sku",),
    "name": ("name", "item"),
    "details": ("details", "description"),
    "unit": ("unit",),
    "item_type": ("type",),
    "vat_rate": ("vat", "vat rate", "vat%"),
    "buy_price": ("buy price", "cost", "purchase price"),
    "standard_price": ("price", "standard price", "rate"),
    "discounted_price": ("discounted price", "discount price"),
    "stock_quantity": ("stock", "quantity"),
    "category": ("category",),
    "brand": ("brand",),
}
NUMERIC_FIELDS = ("vat_rate", "buy_price", "standard_price", "discounted_price", "stock_quantity")

EXPORT_COLUMNS = (
    ("SKU", "sku"),
    ("Name", "name"),
    ("Details", "details"),
    ("Unit", "unit"),
    ("Type", "item_type"),
    ("VAT", "vat_rate"),
    ("Buy Price", "buy_price"),
    ("Price", "standard_price"),
    ("Discounted Price", "discounted_price"),
    ("Stock", "stock_quantity"),
    ("Category", "category"),
    ("Brand", "brand"),
)


def _number(text: str) -> float:
    try:
        return float(text.replace(",", ""))
    except ValueError:
        return 0.0


def _item_type(text: str) -> str:
    normalized = text.strip().capitalize()
    return normalized if normalized in INVENTORY_ITEM_TYPES else INVENTORY_ITEM_TYPES[0]


def _pick(record: Dict[str, str], field: str) -> str:
    for alias in CSV_ALIASES[field]:
        value = record.get(alias, "")
        if value:
            return value
    return ""


def parse_inventory_csv(text: str) -> List[Dict[str, Any]]:
    """CSV text -> inventory field dicts, in file order."""
    if not text or not text.strip():
        return []
    try:
        frame = pd.read_csv(io.StringIO(text.strip()), dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as exc:
        raise ValidationError("CSV could not be parsed", details={"reason": str(exc)}) from None

    if len(frame.columns) < MIN_CSV_COLUMNS:
        return []

    headers = [str(column).strip().lower() for column in frame.columns]
    frame.columns = headers

    items = []
    for position, row in enumerate(frame.itertuples(index=False, name=None), start=1):
        record = {header: str(value).strip() for header, value in zip(headers, row)}
        if not any(record.values()):
            continue

        first_cell = record[headers[0]]
        item = {
            "sku": _pick(record, "sku") or f"SKU-{position:04d}",
            "name": _pick(record, "name") or first_cell or f"Item {position}",
            "details": _pick(record, "details"),
            "unit": _pick(record, "unit") or "nos",
            "item_type": _item_type(_pick(record, "item_type")),
            "category": _pick(record, "category") or None,
            "brand": _pick(record, "brand") or None,
        }
        item.update({field: _number(_pick(record, field)) for field in NUMERIC_FIELDS})
        items.append(item)
    return items


def inventory_to_csv(items: Iterable) -> str:
    """Inventory rows -> CSV text whose headers parse_inventory_csv() reads back."""
    labels = [label for label, _ in EXPORT_COLUMNS]
    frame = pd.DataFrame(
        [{label: getattr(item, attribute) for label, attribute in EXPORT_COLUMNS} for item in items],
        columns=labels,
    )
    return frame.to_csv(index=False)
