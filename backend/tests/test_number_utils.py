# Overview: Pytest coverage for Chilean/US number parsing and money formatting.

from datetime import date

import pytest

from insightbi.number_utils import (
    convert_currency,
    format_cents,
    format_chilean_number,
    format_currency,
    format_us_number,
    parse_chilean_number,
    parse_currency_string,
    to_cents,
)
from insightbi.time_utils import parse_flexible_date


class TestParseChileanNumber:

    @pytest.mark.parametrize("text,expected", [
        ("1.234", 1234),
        ("1.234.567", 1234567),
        ("1.234,56", 1234.56),
        ("1,234.56", 1234.56),
        ("12,5", 12.5),
        ("12.5", 12.5),
        ("1,234", 1234),
        ("-1.500", -1500),
        ("(2.000)", -2000),
        ("  42 ", 42),
        ("1,2345", 12345),
        ("1.2345", 12345),
    ])
    def test_formats(self, text, expected):
        assert parse_chilean_number(text) == pytest.approx(expected)

    def test_passthrough_and_blank(self):
        assert parse_chilean_number(7) == 7.0
        assert parse_chilean_number(None) is None
        assert parse_chilean_number("   ") is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_chilean_number("doce")
        with pytest.raises(ValueError):
            parse_chilean_number(True)


def test_currency_strings():
    assert parse_currency_string("$ 15.289") == 15289
    assert parse_currency_string("US$1,200.50") == pytest.approx(1200.50)
    assert to_cents("$599.990") == 59_999_000
    assert to_cents("12,99") == 1299
    assert to_cents("") is None


def test_formatting():
    assert format_chilean_number(1234567) == "1.234.567"
    assert format_chilean_number(1234.5, 2) == "1.234,50"
    assert format_currency(15289) == "$15.289"
    assert format_currency(15289.08, "USD") == "US$15,289.08"
    assert format_cents(129_900) == "$1.299"
    assert format_chilean_number(-1500) == "-1.500"


def test_convert_currency():
    assert convert_currency(100, "CLP", "CLP") == 100
    assert convert_currency(1, "USD", "CLP") == 900.0
    with pytest.raises(ValueError):
        convert_currency(1, "CLP", "EUR")


def test_parse_flexible_date():
    assert parse_flexible_date("2024-03-01") == date(2024, 3, 1)
    assert parse_flexible_date("01-03-2024") == date(2024, 3, 1)
    assert parse_flexible_date("01/03/2024") == date(2024, 3, 1)
    assert parse_flexible_date("") is None
    with pytest.raises(ValueError):
        parse_flexible_date("marzo")


@pytest.mark.parametrize("value", [0, 7, 12.5, 999, 1234, 1234.5, 15289.08, 1234567.89, -1500.25])
@pytest.mark.parametrize("decimals", [0, 1, 2])
def test_format_then_parse(value, decimals):
    expected = round(value, decimals)
    assert parse_chilean_number(format_chilean_number(value, decimals)) == pytest.approx(expected)
    assert parse_chilean_number(format_us_number(value, decimals)) == pytest.approx(expected)
