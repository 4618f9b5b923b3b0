from __future__ import annotations

import re
from typing import Any, Optional


CURRENCIES = {
    "CLP": {"symbol": "$", "name": "Peso Chileno", "decimals": 0, "thousands": ".", "decimal": ","},
    "USD": {"symbol": "US$", "name": "Dólar Estadounidense", "decimals": 2, "thousands": ",", "decimal": "."},
}

# Reference rates for display conversion only; amounts are stored in CLP.
EXCHANGE_RATES = {
    ("CLP", "USD"): 0.0011,
    ("USD", "CLP"): 900.0,
}

_CURRENCY_NOISE = re.compile(r"(US\$|USD|CLP|\$|\s| )", re.IGNORECASE)
_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


def parse_chilean_number(value: Any) -> Optional[float]:
    """
    Parse a number written in Chilean (1.234,56) or US (1,234.56) style.

    - int/float pass through; None and blank strings -> None
    - both separators present: the one that appears last is the decimal mark
    - only commas: a single comma followed by 1-2 digits is decimal, otherwise
      commas are thousands separators
    - only dots: several dots, or a single dot followed by 3+ digits, are
      thousands separators ("1.234" -> 1234); otherwise decimal ("12.5")

    Raises ValueError when the text is not a number.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip().replace(" ", "").replace(" ", "")
    if not text:
        return None

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]
    if text.startswith("-"):
        negative = not negative
        text = text[1:]
    elif text.startswith("+"):
        text = text[1:]

    has_dot = "." in text
    has_comma = "," in text

    if has_dot and has_comma:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma:
        parts = text.split(",")
        if len(parts) == 2 and 1 <= len(parts[1]) <= 2:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_dot:
        parts = text.split(".")
        if len(parts) > 2 or len(parts[1]) > 2:
            text = text.replace(".", "")

    if not _NUMERIC.match(text):
        raise ValueError(f"Not a number: {value!r}")

    number = float(text)
    return -number if negative else number


def parse_currency_string(value: Any) -> Optional[float]:
    """Like parse_chilean_number, but tolerates currency symbols and codes ("$ 15.289", "US$1,200.50")."""
    if value is None or isinstance(value, (int, float)):
        return parse_chilean_number(value)
    return parse_chilean_number(_CURRENCY_NOISE.sub("", str(value)))


def to_cents(value: Any) -> Optional[int]:
    """Parse a money amount in major units into integer cents."""
    number = parse_currency_string(value)
    if number is None:
        return None
    return int(round(number * 100))


def _group_thousands(integer_digits: str, sep: str) -> str:
    groups = []
    while len(integer_digits) > 3:
        groups.insert(0, integer_digits[-3:])
        integer_digits = integer_digits[:-3]
    groups.insert(0, integer_digits)
    return sep.join(groups)


def format_number(value: float, decimals: int = 0, *, thousands: str = ".", decimal: str = ",") -> str:
    """
    Format a number with explicit separators (Chilean style by default).

    parse_chilean_number reads the output back only for 0 to 2 decimals; a
    3-digit fraction looks like a thousands group.
    """
    rounded = round(float(value), decimals)
    negative = rounded < 0
    text = f"{abs(rounded):.{decimals}f}"
    if decimals > 0:
        integer_part, fraction = text.split(".")
    else:
        integer_part, fraction = text, ""
    out = _group_thousands(integer_part, thousands)
    if fraction:
        out = f"{out}{decimal}{fraction}"
    return f"-{out}" if negative else out


def format_chilean_number(value: float, decimals: int = 0) -> str:
    return format_number(value, decimals, thousands=".", decimal=",")


def format_us_number(value: float, decimals: int = 2) -> str:
    return format_number(value, decimals, thousands=",", decimal=".")


def convert_currency(amount: float, from_currency: str, to_currency: str) -> float:
    if from_currency == to_currency:
        return amount
    rate = EXCHANGE_RATES.get((from_currency, to_currency))
    if rate is None:
        raise ValueError(f"Unsupported conversion {from_currency} -> {to_currency}")
    return amount * rate


def format_currency(amount: float, currency: str = "CLP", *, show_symbol: bool = True, decimals: int | None = None) -> str:
    """
    Format an amount (major units) for display.

    CLP: "$15.289" ; USD: "US$15,289.08"
    """
    fmt = CURRENCIES.get(currency)
    if fmt is None:
        raise ValueError(f"Unsupported currency: {currency}")
    places = fmt["decimals"] if decimals is None else decimals
    body = format_number(amount, places, thousands=fmt["thousands"], decimal=fmt["decimal"])
    return f"{fmt['symbol']}{body}" if show_symbol else body


def format_cents(cents: int | None, currency: str = "CLP") -> str:
    return format_currency((cents or 0) / 100, currency)
