from decimal import Decimal

import pytest

from storefront.core.money import apply_rate, coerce_amount, format_money, from_minor, round_minor, to_minor


@pytest.mark.parametrize(
    "value, expected",
    [(Decimal("100.5"), 101), (Decimal("100.4"), 100), (Decimal("0.5"), 1), (Decimal("2.49999"), 2)],
)
def test_round_minor_half_up(value, expected):
    assert round_minor(value) == expected


def test_major_minor_conversions():
    assert to_minor("79.99") == 7999
    assert to_minor(None) == 0
    assert from_minor(7999) == Decimal("79.99")


def test_apply_rate():
    assert apply_rate(14400, Decimal("0.11")) == 1584
    assert apply_rate(1005, Decimal("0.1")) == 101


def test_format_money():
    assert format_money(123456) == "$1,234.56"
    assert format_money(500, "eur") == "5.00 EUR"


def test_coerce_amount():
    assert coerce_amount("12") == 12
    assert coerce_amount(None, 3) == 3
    assert coerce_amount("abc") == 0
