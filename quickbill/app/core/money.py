"""
Money helpers.

All balances are Decimal with two decimal places, rounded half-up
at the calculation boundary only.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Union

from quickbill.app.core.config import settings

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(amount: Union[Decimal, int, float, str, None]) -> Decimal:
    """Round to two decimal places (None counts as zero)."""
    if amount is None:
        return ZERO
    return Decimal(str(amount)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def parse_amount(raw: Any) -> Optional[Decimal]:
    """
    Strictly parse a submitted amount.

    Returns None for anything that is not a finite number. Booleans are
    rejected even though they are ints in Python.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def has_cents_only(value: Decimal) -> bool:
    """True when the value carries no more than two decimal places."""
    return value == value.quantize(TWO_PLACES)


def clamp_non_negative(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def format_money(amount: Union[Decimal, int, float, None], with_currency: bool = True) -> str:
    """Format like ``GHS 1,234.50``."""
    formatted = f"{round_money(amount):,.2f}"
    return f"{settings.currency_code} {formatted}" if with_currency else formatted
