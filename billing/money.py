"""
billing/money.py

Money primitives shared by the calculators and every document backend:
- permissive numeric coercion (drafts carry None / "" / garbage; those count as 0)
- half-up rounding for display
- currency / price formatting
- number-to-words with South Asian (Lakh / Crore) grouping

IMPORTANT:
- Stored values keep full float precision. Rounding here is for DISPLAY only.
- number_to_words() is the single implementation used by job documents AND topsheets.
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CURRENCY_SYMBOL = "৳"
CURRENCY_WORD = "Taka"
FRACTION_WORD = "Paise"

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

CRORE = 10_000_000
LAKH = 100_000


# ---------------------------------------------------------------------
# Coercion & rounding
# ---------------------------------------------------------------------
def to_float(value) -> float:
    """
    Convert anything numeric-ish to float. None, empty strings, NaN and unparsable
    values become 0.0 instead of raising.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def to_decimal(value) -> Decimal:
    """Decimal via str() so floats keep their shortest repr (1000.5 -> Decimal('1000.5'))."""
    try:
        return Decimal(str(to_float(value)))
    except InvalidOperation:
        return Decimal("0")


def round_money(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------
def format_price(amount) -> str:
    """2 decimals with thousands separators, no currency glyph: 1234.5 -> '1,234.50'."""
    return f"{round_money(amount):,.2f}"


def format_currency(amount) -> str:
    """Currency glyph + price: 1234.5 -> '৳ 1,234.50'."""
    return f"{CURRENCY_SYMBOL} {format_price(amount)}"


# ---------------------------------------------------------------------
# Number to words
# ---------------------------------------------------------------------
def _below_hundred(n: int) -> str:
    if n < 20:
        return _ONES[n]
    tens, ones = divmod(n, 10)
    return f"{_TENS[tens]} {_ONES[ones]}" if ones else _TENS[tens]


def integer_to_words(n: int) -> str:
    """
    Spell a non-negative integer with Crore / Lakh / Thousand / Hundred grouping.

    Crore is the largest scale word; anything above 99 Crore recurses on the crore
    count, e.g. 10**9 -> 'One Hundred Crore'. Returns '' for 0.
    """
    if n <= 0:
        return ""

    parts = []
    crores, n = divmod(n, CRORE)
    if crores:
        parts.append(f"{integer_to_words(crores)} Crore")

    lakhs, n = divmod(n, LAKH)
    if lakhs:
        parts.append(f"{_below_hundred(lakhs)} Lakh")

    thousands, n = divmod(n, 1000)
    if thousands:
        parts.append(f"{_below_hundred(thousands)} Thousand")

    hundreds, n = divmod(n, 100)
    if hundreds:
        parts.append(f"{_ONES[hundreds]} Hundred")

    if n:
        parts.append(_below_hundred(n))

    return " ".join(parts)


def number_to_words(amount) -> str:
    """
    Amount in words, e.g.:
        0          -> 'Zero Taka Only'
        100000     -> 'One Lakh Taka Only'
        1234567    -> 'Twelve Lakh Thirty Four Thousand Five Hundred Sixty Seven Taka Only'
        1000.50    -> 'One Thousand and Fifty Paise Taka Only'

    The fractional part is rounded half-up to 2 places before splitting, so 0.999 carries
    into the integer part. Negative amounts are prefixed with 'Minus'.
    """
    value = round_money(amount)
    if value < 0:
        return f"Minus {number_to_words(-value)}"

    integer_part = int(value)
    fraction = int((value - integer_part) * 100)

    if integer_part == 0 and fraction == 0:
        return f"Zero {CURRENCY_WORD} Only"

    words = integer_to_words(integer_part) or "Zero"
    if fraction:
        words = f"{words} and {_below_hundred(fraction)} {FRACTION_WORD}"
    return f"{words} {CURRENCY_WORD} Only"
