"""
Payment Identifiers — Short correlation keys shared with the gateway.

Format: PREFIX + first 4 chars of the owner id + base-36 millisecond
timestamp + random base-36 suffix, e.g. ``UG3f2a``+``mgx1k2ab``+``q09z7c``.
"""
import secrets
import string
import time
from typing import Optional

BASE36_ALPHABET = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lower-case base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def generate_identifier(
    owner_id: str,
    prefix: str = "UG",
    max_length: int = 20,
    now_ms: Optional[int] = None,
) -> str:
    """Build a payment identifier that fits the gateway's field limit.

    The random suffix fills whatever room is left after prefix, owner
    fragment and timestamp, so identifiers minted in the same millisecond
    still differ.
    """
    owner_fragment = "".join(ch for ch in (owner_id or "") if ch.isalnum())[:4] or "anon"
    stamp = to_base36(now_ms if now_ms is not None else int(time.time() * 1000))
    head = f"{prefix}{owner_fragment}{stamp}"
    room = max_length - len(head)
    if room < 4:
        raise ValueError(f"identifier prefix too long for max_length={max_length}")
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(room))
    return head + suffix
