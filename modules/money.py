"""Money parsing and formatting for amounts read off the ordering website."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENTS = Decimal("0.01")

_AMOUNT_PATTERN = re.compile(r"-?\d[\d,]*(?:\.\d+)?|-?\.\d+")


def to_money(value) -> Decimal:
    """Convert a number or numeric string to a Decimal rounded to cents."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_money(text: str) -> Decimal:
    """
    Parse a displayed amount such as "$12.50", "12.5" or "USD 1,024.00".

    Raises:
        ValueError: If the text contains no amount
    """
    found = _AMOUNT_PATTERN.search(text or "")
    if not found:
        raise ValueError(f"No amount in {text!r}")
    try:
        return to_money(found.group(0).replace(",", ""))
    except InvalidOperation:
        raise ValueError(f"Invalid amount in {text!r}")


def format_money(amount: Decimal) -> str:
    """Format as dollars, e.g. Decimal('5') -> '$5.00'."""
    return f"${to_money(amount):.2f}"
