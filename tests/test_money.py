from decimal import Decimal

import pytest

from billing.money import format_currency, format_price, integer_to_words, number_to_words, round_money, to_float


@pytest.mark.parametrize("value", [None, "", "abc", float("nan"), True, [1]])
def test_to_float_treats_garbage_as_zero(value):
    assert to_float(value) == 0.0


def test_to_float_parses_numeric_strings():
    assert to_float("12.5") == 12.5
    assert to_float(3) == 3.0


def test_round_money_is_half_up():
    assert round_money(2.675) == Decimal("2.68")
    assert round_money(0.125) == Decimal("0.13")
    assert round_money(-1.005) == Decimal("-1.01")


def test_format_price_and_currency():
    assert format_price(1234.5) == "1,234.50"
    assert format_price(0) == "0.00"
    assert format_price(None) == "0.00"
    assert format_currency(1234567.891) == "৳ 1,234,567.89"


def test_integer_to_words_uses_lakh_and_crore():
    assert integer_to_words(0) == ""
    assert integer_to_words(105) == "One Hundred Five"
    assert integer_to_words(100000) == "One Lakh"
    assert integer_to_words(12345678) == "One Crore Twenty Three Lakh Forty Five Thousand Six Hundred Seventy Eight"
    assert integer_to_words(10**9) == "One Hundred Crore"


def test_number_to_words_examples():
    assert number_to_words(0) == "Zero Taka Only"
    assert number_to_words(100000) == "One Lakh Taka Only"
    assert number_to_words(1234567) == "Twelve Lakh Thirty Four Thousand Five Hundred Sixty Seven Taka Only"
    assert number_to_words(1000.5) == "One Thousand and Fifty Paise Taka Only"
    assert number_to_words(0.5) == "Zero and Fifty Paise Taka Only"


def test_number_to_words_rounds_fraction_before_splitting():
    assert number_to_words(99.999) == "One Hundred Taka Only"


def test_number_to_words_negative():
    assert number_to_words(-20) == "Minus Twenty Taka Only"
