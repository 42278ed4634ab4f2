"""
Payment Exceptions — Failures raised by the payment services.
Converted into the structured error response at the API boundary (see main.py).
"""
from typing import Optional


class PaymentError(Exception):
    """Base class for errors surfaced to the buyer with a suggested remedy."""

    code = "UNKNOWN"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code


class Unauthorized(PaymentError):
    code = "AUTH_ERROR"
    status_code = 401


class InvalidAmount(PaymentError):
    code = "INVALID_AMOUNT"
    status_code = 400


class ProfileLookupFailed(PaymentError):
    code = "PROFILE_ERROR"
    status_code = 500


class GatewayNotConfigured(PaymentError):
    code = "CONFIG_ERROR"
    status_code = 500


class GatewayUnreachable(PaymentError):
    code = "NETWORK_ERROR"
    status_code = 502


class GatewayRejected(PaymentError):
    """The gateway answered but refused to create a checkout."""

    status_code = 400


class LedgerUnavailable(PaymentError):
    code = "STORAGE_ERROR"
    status_code = 500


class RateLimited(PaymentError):
    status_code = 429


class NotificationError(Exception):
    """A gateway notification that cannot be applied (answered with a 4xx)."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MalformedNotification(NotificationError):
    status_code = 400


class MissingIdentifier(NotificationError):
    status_code = 400


class TransactionNotFound(NotificationError):
    status_code = 404
