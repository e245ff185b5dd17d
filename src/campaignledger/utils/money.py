"""Monetary helpers.

All amounts are ``Decimal``. Rounding to cents uses ROUND_HALF_UP, which on
``Decimal`` rounds halves away from zero (2.675 -> 2.68, -2.675 -> -2.68).
"""

import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Union

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without rounding.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its binary
    expansion.

    Raises:
        ValueError: If the value is not numeric or not finite
    """
    amount = _as_decimal(value)
    if not amount.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return amount


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}")
    raise ValueError(f"Not a monetary amount: {value!r}")


def round_money(value: Number) -> Decimal:
    """Round to 2 decimal places, halves away from zero.

    Raises:
        ValueError: If the value is not a finite amount within Decimal precision
    """
    try:
        return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount out of range: {value!r}")


def sum_money(values: Iterable[Number]) -> Decimal:
    """Sum amounts at full precision and round the result once."""
    total = Decimal("0")
    for value in values:
        total += to_decimal(value)
    return round_money(total)


def parse_amount(amount_str: str) -> Decimal:
    """Parse a user supplied amount string into a rounded Decimal.

    Handles "123.45", "$123.45", "-123.45", "-$123.45", "1,234.56" and
    "(123.45)" (negative in parentheses).

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    text = amount_str.strip()

    is_negative = False
    if text.startswith("(") and text.endswith(")"):
        is_negative = True
        text = text[1:-1]

    text = re.sub(r"[$€£¥]", "", text).replace(",", "").strip()

    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")
    return round_money(-amount if is_negative else amount)
