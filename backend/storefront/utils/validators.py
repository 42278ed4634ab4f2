"""
Validators — Top-up amount parsing and checkout customer fields.
"""
import math
from decimal import Decimal, InvalidOperation

from storefront.exceptions import InvalidAmount


def parse_amount(raw, minimum: int = 1, maximum: int = 100000) -> Decimal:
    """Validate a requested top-up amount and return it as a Decimal.

    Accepts ints, floats and numeric strings. Raises InvalidAmount for
    missing, boolean, non-numeric, non-finite or out-of-range values.
    """
    bounds_msg = f"Invalid amount. Must be between {minimum} and {maximum}"
    if raw is None or isinstance(raw, bool):
        raise InvalidAmount(bounds_msg)
    if isinstance(raw, float) and not math.isfinite(raw):
        raise InvalidAmount(bounds_msg)
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(bounds_msg)
    if not amount.is_finite() or amount < minimum or amount > maximum:
        raise InvalidAmount(bounds_msg)
    return amount.quantize(Decimal("0.01"))


def split_customer_name(full_name: str | None, username: str | None, email: str | None) -> tuple[str, str]:
    """Derive gateway first/last name: full name, else username, else email local part."""
    display = (full_name or "").strip() or (username or "").strip() or (email or "").split("@")[0]
    parts = display.split()
    first = parts[0] if parts else "Customer"
    last = " ".join(parts[1:]) or "User"
    return first, last
