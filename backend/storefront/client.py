"""
Payment Flow Client — Buyer-side orchestration over the payments API.

Starts a checkout, and after the gateway sends the buyer back, polls the
ledger until the notification has been applied. Running out of attempts
means "still processing", never failure: the notification may land later.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_MAX_ATTEMPTS = 10


class PollOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PROCESSING = "processing"


@dataclass
class PollResult:
    outcome: PollOutcome
    attempts: int
    transaction: Optional[dict] = None

    @property
    def is_terminal_failure(self) -> bool:
        return self.outcome in (PollOutcome.FAILED, PollOutcome.CANCELLED)


class PaymentFlowClient:
    """Talks to the payments API with the buyer's bearer token."""

    def __init__(
        self,
        access_token: str,
        base_url: str = "http://localhost:8000",
        http: Optional[httpx.Client] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = 10.0,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.headers = {"Authorization": f"Bearer {access_token}"}
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    def initiate(self, amount, origin_url: str) -> dict:
        """Request a checkout. Returns the API body (success or structured error)."""
        try:
            response = self.http.post(
                "/api/payment/initiate",
                json={"amount": amount, "originUrl": origin_url},
                headers=self.headers,
            )
        except httpx.HTTPError as e:
            logger.error("Initiate payment error: %s", e)
            return {"success": False, "error": "Failed to initiate payment"}
        try:
            return response.json()
        except ValueError:
            return {"success": False, "error": f"Unexpected response (HTTP {response.status_code})"}

    def get_transaction(self, identifier: str) -> Optional[dict]:
        """One ledger row, or None when it is not visible (yet) or the read failed."""
        try:
            response = self.http.get(f"/api/payment/transactions/{identifier}", headers=self.headers)
        except httpx.HTTPError as e:
            logger.warning("Fetch transaction error: %s", e)
            return None
        if response.status_code != 200:
            return None
        return response.json()

    def list_transactions(self, limit: Optional[int] = None) -> list[dict]:
        params = {"limit": limit} if limit else None
        try:
            response = self.http.get("/api/payment/transactions", params=params, headers=self.headers)
        except httpx.HTTPError as e:
            logger.warning("Fetch history error: %s", e)
            return []
        if response.status_code != 200:
            return []
        return response.json()

    def wait_for_completion(self, identifier: str, cancel: Optional[threading.Event] = None) -> PollResult:
        """Poll until completed, a terminal failure, cancellation, or the attempt budget runs out."""
        cancel = cancel or threading.Event()
        txn = None
        attempts = 0
        while attempts < self.max_attempts and not cancel.is_set():
            attempts += 1
            latest = self.get_transaction(identifier)
            if latest is not None:
                txn = latest
                status = txn.get("status")
                if status == PollOutcome.COMPLETED.value:
                    return PollResult(PollOutcome.COMPLETED, attempts, txn)
                if status in (PollOutcome.FAILED.value, PollOutcome.CANCELLED.value):
                    return PollResult(PollOutcome(status), attempts, txn)
            if attempts < self.max_attempts and cancel.wait(self.poll_interval):
                break

        logger.info("Payment %s still processing after %d attempts", identifier, attempts)
        return PollResult(PollOutcome.PROCESSING, attempts, txn)
