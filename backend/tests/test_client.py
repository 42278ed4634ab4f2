import threading
from decimal import Decimal

import httpx
import pytest

from storefront.client import PaymentFlowClient, PollOutcome
from storefront.services.ledger_service import LedgerService


@pytest.fixture
def buyer(make_profile):
    return make_profile(balance=0)


@pytest.fixture
def flow(client, gateway, buyer, token_factory):
    return PaymentFlowClient(token_factory(buyer.id, buyer.email), http=client, poll_interval=0, max_attempts=10)


def test_initiate_and_poll_until_completed(flow, client, db, buyer):
    started = flow.initiate(300, "https://shop.example")
    assert started["success"] is True
    identifier = started["identifier"]

    client.post("/api/payment/ipn", json={"identifier": identifier, "status": "success", "trx_id": "T-77"})
    result = flow.wait_for_completion(identifier)

    assert result.outcome is PollOutcome.COMPLETED
    assert result.attempts == 1
    assert result.transaction["credits"] == 300
    assert LedgerService.get_balance(db, buyer.id) == Decimal("300")


def test_budget_exhausted_means_still_processing(flow):
    identifier = flow.initiate(50, "https://shop.example")["identifier"]

    result = flow.wait_for_completion(identifier)

    assert result.outcome is PollOutcome.PROCESSING
    assert not result.is_terminal_failure
    assert result.attempts == 10
    assert result.transaction["status"] == "pending"


def test_completion_arriving_mid_poll(flow, client, monkeypatch):
    identifier = flow.initiate(75, "https://shop.example")["identifier"]
    original = flow.get_transaction
    seen = []

    def get_and_maybe_notify(ident):
        seen.append(ident)
        if len(seen) == 3:
            client.post("/api/payment/ipn", json={"identifier": ident, "status": "completed"})
        return original(ident)

    monkeypatch.setattr(flow, "get_transaction", get_and_maybe_notify)
    result = flow.wait_for_completion(identifier)

    assert result.outcome is PollOutcome.COMPLETED
    assert result.attempts == 3


def test_terminal_failure_stops_polling(flow, client):
    identifier = flow.initiate(75, "https://shop.example")["identifier"]
    client.post("/api/payment/ipn", json={"identifier": identifier, "status": "cancelled"})

    result = flow.wait_for_completion(identifier)

    assert result.outcome is PollOutcome.CANCELLED
    assert result.is_terminal_failure
    assert result.attempts == 1


def test_unknown_identifier_keeps_waiting(flow):
    result = flow.wait_for_completion("UGdoesnotexist")
    assert result.outcome is PollOutcome.PROCESSING
    assert result.transaction is None


def test_cancel_event_stops_early(client, gateway, buyer, token_factory):
    flow = PaymentFlowClient(token_factory(buyer.id), http=client, poll_interval=30, max_attempts=10)
    identifier = flow.initiate(10, "https://shop.example")["identifier"]
    cancel = threading.Event()
    cancel.set()

    result = flow.wait_for_completion(identifier, cancel=cancel)

    assert result.outcome is PollOutcome.PROCESSING
    assert result.attempts == 0


def test_structured_error_is_returned_not_raised(flow):
    body = flow.initiate(0, "https://shop.example")
    assert body["success"] is False
    assert body["paymentError"]["code"] == "INVALID_AMOUNT"


def test_history(flow):
    flow.initiate(10, "https://shop.example")
    flow.initiate(20, "https://shop.example")
    assert [t["amount"] for t in flow.list_transactions()] == [20, 10]
    assert len(flow.list_transactions(limit=1)) == 1


def test_transport_failure_is_reported():
    def refuse(request):
        raise httpx.ConnectError("refused")

    flow = PaymentFlowClient("token", http=httpx.Client(base_url="http://api.test", transport=httpx.MockTransport(refuse)))
    assert flow.initiate(10, "https://shop.example") == {"success": False, "error": "Failed to initiate payment"}
    assert flow.get_transaction("UG1") is None
    assert flow.list_transactions() == []
