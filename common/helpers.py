"""
Catalog Shop - Shared Helpers
==============================
Pure utility functions with NO database or module dependencies.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional

_CENT = Decimal("0.01")
MAX_PRICE = Decimal("99999999.99")  # Numeric(10, 2)


def safe_int(value) -> Optional[int]:
    """Safely convert a value to int. Returns None on failure.

    Accepts ints, integral floats and digit strings. Booleans and
    fractional numbers are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def to_positive_int(value) -> Optional[int]:
    """Parse a positive integer id. Returns None for anything else."""
    parsed = safe_int(value)
    if parsed is None or parsed <= 0:
        return None
    return parsed


def to_quantity(value, max_qty: int) -> int:
    """Parse a quantity: invalid or non-positive → 0, otherwise clamped to max_qty."""
    parsed = safe_int(value)
    if parsed is None or parsed <= 0:
        return 0
    return min(parsed, max_qty)


def safe_decimal(value) -> Optional[Decimal]:
    """Safely convert to a finite Decimal. Returns None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def parse_price(value) -> Optional[Decimal]:
    """Parse a price in [0, MAX_PRICE] rounded to 2 decimals. Returns None if invalid."""
    d = safe_decimal(value)
    if d is None or d < 0 or d > MAX_PRICE:
        return None
    return _to_cents(d)


def format_money(value) -> str:
    """Format an amount as '$X.YY'. Non-finite or negative amounts show as $0.00."""
    d = safe_decimal(value)
    if d is None or d < 0:
        return "$0.00"
    return f"${_to_cents(d)}"


def sanitize_text(value, max_len: int = 255) -> Optional[str]:
    """Strip a text field. Returns None when empty, not a string, or too long."""
    safe_value = value.strip() if isinstance(value, str) else ""
    if not safe_value or len(safe_value) > max_len:
        return None
    return safe_value


def normalize_description(value, max_len: int = 4000) -> str:
    if value is None:
        return ""
    desc = str(value).strip()
    return desc[:max_len]


def _to_cents(d: Decimal) -> Decimal:
    """Round to 2 decimals with enough precision for any magnitude."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, d.adjusted() + 3)
        return d.quantize(_CENT, rounding=ROUND_HALF_UP)
