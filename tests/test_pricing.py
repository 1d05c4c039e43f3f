from decimal import Decimal

import pytest

from tensor_sales_bot.pricing import format_price, format_sol, format_usd, lamports_to_sol


def test_format_price_example() -> None:
    price = format_price("2500000000", 150.0)
    assert price.native == "2.50"
    assert price.fiat == "$375.00"


def test_format_price_zero() -> None:
    price = format_price(0, 123.45)
    assert price.native == "0.00"
    assert price.fiat == "$0.00"


def test_format_price_is_deterministic() -> None:
    assert format_price(1_234_567_890, 98.76) == format_price(1_234_567_890, 98.76)


def test_rounding_is_half_up() -> None:
    assert lamports_to_sol(5_000_000) == Decimal("0.01")
    assert lamports_to_sol(4_999_999) == Decimal("0.00")
    assert format_sol(1_125_000_000) == "1.13"


def test_fiat_uses_grouping() -> None:
    assert format_price(1_000_000_000_000, 150.0).fiat == "$150,000.00"
    assert format_usd(1234.5) == "$1,234.50"


def test_float_shaped_lamport_strings() -> None:
    assert format_price("2500000000.0", 150.0) == format_price("2500000000", 150.0)
    assert format_sol("2.5e9") == "2.50"


@pytest.mark.parametrize("raw", ["2500000000.5", "abc", "", "NaN"])
def test_invalid_lamport_amounts(raw: str) -> None:
    with pytest.raises(ValueError):
        lamports_to_sol(raw)
