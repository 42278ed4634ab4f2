"""
Payment Error Catalog — Buyer-facing titles, descriptions and remedies,
plus best-effort classification of the gateway's free-text messages.
"""
from typing import Iterable

SUGGEST_MANUAL = "manual"
SUGGEST_RETRY = "retry"
SUGGEST_SUPPORT = "support"

ERROR_CATALOG: dict[str, dict[str, str]] = {
    "AUTH_ERROR": {
        "title": "Session expired",
        "description": "We could not verify your login.",
        "suggestion": SUGGEST_RETRY,
    },
    "INVALID_AMOUNT": {
        "title": "Invalid amount",
        "description": "Enter an amount between Rs. 1 and Rs. 100,000.",
        "suggestion": SUGGEST_RETRY,
    },
    "PROFILE_ERROR": {
        "title": "Account unavailable",
        "description": "We could not load your account details.",
        "suggestion": SUGGEST_SUPPORT,
    },
    "GATEWAY_BALANCE": {
        "title": "Online payment unavailable",
        "description": "The payment provider cannot accept payments right now.",
        "suggestion": SUGGEST_MANUAL,
    },
    "CONFIG_ERROR": {
        "title": "Online payment unavailable",
        "description": "Online payments are not configured correctly.",
        "suggestion": SUGGEST_MANUAL,
    },
    "NETWORK_ERROR": {
        "title": "Connection problem",
        "description": "We could not reach the payment provider.",
        "suggestion": SUGGEST_RETRY,
    },
    "MAINTENANCE": {
        "title": "Under maintenance",
        "description": "The payment provider is temporarily unavailable.",
        "suggestion": SUGGEST_MANUAL,
    },
    "LIMIT_EXCEEDED": {
        "title": "Limit exceeded",
        "description": "This payment exceeds the provider's transaction limit.",
        "suggestion": SUGGEST_MANUAL,
    },
    "STORAGE_ERROR": {
        "title": "Something went wrong",
        "description": "We could not record your payment request.",
        "suggestion": SUGGEST_SUPPORT,
    },
    "UNKNOWN": {
        "title": "Payment failed",
        "description": "The payment could not be started.",
        "suggestion": SUGGEST_RETRY,
    },
}

# Checked in order, first match wins.
GATEWAY_MESSAGE_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("GATEWAY_BALANCE", ("insufficient", "balance")),
    ("CONFIG_ERROR", ("invalid key", "public key", "secret key", "api key", "credential", "unauthorized", "merchant not found")),
    ("MAINTENANCE", ("maintenance", "unavailable", "temporarily", "service down")),
    ("LIMIT_EXCEEDED", ("limit", "exceed", "maximum")),
]


def classify_gateway_message(message) -> str:
    """Map a gateway error message to an error code (``UNKNOWN`` when nothing matches)."""
    if isinstance(message, (list, tuple)):
        message = " ".join(str(m) for m in message)
    text = str(message or "").lower()
    if not text:
        return "UNKNOWN"
    for code, keywords in GATEWAY_MESSAGE_RULES:
        if _contains_any(text, keywords):
            return code
    return "UNKNOWN"


def describe(code: str) -> dict:
    """Return ``{code, title, description, suggestion}`` for an error code."""
    details = ERROR_CATALOG.get(code, ERROR_CATALOG["UNKNOWN"])
    return {"code": code if code in ERROR_CATALOG else "UNKNOWN", **details}


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(k in text for k in keywords)
