from decimal import Decimal

import httpx
import pytest

from storefront.client import PaymentFlowClient
from storefront.config import get_settings
from storefront.dependencies import initiate_throttle
from storefront.main import app
from storefront.models.payment import PaymentTransaction
from storefront.services.ledger_service import LedgerService
from storefront.utils.rate_limiter import rate_limit

settings = get_settings()


def initiate(client, headers, amount=500, origin="https://shop.example"):
    return client.post("/api/payment/initiate", json={"amount": amount, "originUrl": origin}, headers=headers)


@pytest.mark.parametrize("amount", [0, -5, 100001, "abc", None])
def test_invalid_amounts_create_no_rows(client, db, gateway, make_profile, headers_for, amount):
    profile = make_profile()
    response = initiate(client, headers_for(profile), amount=amount)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["paymentError"]["code"] == "INVALID_AMOUNT"
    assert body["paymentError"]["suggestion"] == "retry"
    assert db.query(PaymentTransaction).count() == 0
    assert gateway.calls == []


@pytest.mark.parametrize("amount", [1, 100000])
def test_boundary_amounts_are_accepted(client, db, gateway, make_profile, headers_for, amount):
    profile = make_profile()
    response = initiate(client, headers_for(profile), amount=amount)

    assert response.status_code == 200
    txn = db.query(PaymentTransaction).one()
    assert txn.amount == Decimal(amount)
    assert txn.credits == Decimal(amount)


def test_missing_or_bad_token_is_auth_error(client, db, gateway, make_profile, token_factory):
    profile = make_profile()
    cases = [
        {},
        {"Authorization": "Token abc"},
        {"Authorization": "Bearer not-a-jwt"},
        {"Authorization": f"Bearer {token_factory(profile.id, secret='wrong-secret')}"},
        {"Authorization": f"Bearer {token_factory(profile.id, expires_in=-60)}"},
        {"Authorization": f"Bearer {token_factory(profile.id, audience='anon')}"},
    ]
    for headers in cases:
        response = initiate(client, headers)
        assert response.status_code == 401
        assert response.json()["paymentError"]["code"] == "AUTH_ERROR"
    assert db.query(PaymentTransaction).count() == 0


@pytest.mark.parametrize("request_kwargs", [
    {"data": {"amount": "500"}},
    {"json": {"amount": 500, "originUrl": 123}},
    {"json": [500]},
    {"content": b"not json", "headers": {"Content-Type": "application/json"}},
])
def test_malformed_bodies_get_structured_errors(client, db, gateway, make_profile, headers_for, request_kwargs):
    profile = make_profile()
    headers = {**headers_for(profile), **request_kwargs.pop("headers", {})}
    response = client.post("/api/payment/initiate", headers=headers, **request_kwargs)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["paymentError"]["code"] == "INVALID_AMOUNT"
    assert "detail" not in body
    assert db.query(PaymentTransaction).count() == 0
    assert gateway.calls == []


def test_throttled_initiate_gets_structured_error(client, db, gateway, make_profile, headers_for):
    app.dependency_overrides[initiate_throttle] = rate_limit(requests=1, window=60, scope="initiate-test")
    headers = headers_for(make_profile())

    assert initiate(client, headers).status_code == 200
    response = initiate(client, headers)

    assert response.status_code == 429
    body = response.json()
    assert body["success"] is False
    assert body["paymentError"]["code"] == "UNKNOWN"
    assert body["paymentError"]["suggestion"] == "retry"
    assert db.query(PaymentTransaction).count() == 1


def test_client_initiate_always_sees_success_flag(client, gateway, make_profile, token_factory):
    profile = make_profile()
    flow = PaymentFlowClient(token_factory(profile.id, profile.email), http=client)

    body = flow.initiate(500, origin_url=123)
    assert body["success"] is False
    assert body["paymentError"]["code"] == "INVALID_AMOUNT"


def test_identity_comes_from_token_not_body(client, db, gateway, make_profile, headers_for):
    owner, other = make_profile(), make_profile()
    response = client.post(
        "/api/payment/initiate",
        json={"amount": 10, "originUrl": "https://shop.example", "user_id": other.id},
        headers=headers_for(owner),
    )
    assert response.status_code == 200
    assert db.query(PaymentTransaction).one().user_id == owner.id


def test_success_moves_row_to_pending_and_sends_checkout_fields(client, db, gateway, make_profile, headers_for):
    profile = make_profile(full_name="Aarav Kumar Sharma")
    response = initiate(client, headers_for(profile), amount=500, origin="https://shop.example/")

    assert response.status_code == 200
    body = response.json()
    identifier = body["identifier"]
    assert body == {"success": True, "redirectUrl": gateway.reply["redirect_url"], "identifier": identifier}
    assert len(identifier) <= 20

    txn = LedgerService.get_by_identifier(db, identifier)
    assert txn.status == "pending"
    assert txn.redirect_url == gateway.reply["redirect_url"]
    assert txn.user_email == profile.email

    [call] = gateway.calls
    assert call["url"] == settings.GATEWAY_TEST_URL
    assert call["headers"]["content-type"] == "application/x-www-form-urlencoded"
    form = call["form"]
    assert form["public_key"] == "pk_test_123"
    assert form["secret_key"] == "sk_test_456"
    assert form["identifier"] == identifier
    assert form["currency"] == "NPR"
    assert form["amount"] == "500"
    assert form["ipn_url"] == "https://api.storefront.test/api/payment/ipn"
    assert form["success_url"] == f"https://shop.example/payment/success?id={identifier}"
    assert form["cancel_url"] == f"https://shop.example/payment/cancel?id={identifier}"
    assert form["customer[first_name]"] == "Aarav"
    assert form["customer[last_name]"] == "Kumar Sharma"
    assert form["customer[email]"] == profile.email
    assert form["checkout_theme"] == "dark"


def test_hash_route_prefix_and_legacy_site_url(client, gateway, make_profile, headers_for, monkeypatch):
    monkeypatch.setattr(settings, "CLIENT_ROUTE_PREFIX", "/#")
    profile = make_profile()
    response = client.post("/api/payment/initiate", json={"amount": 20, "siteUrl": "https://ug.example"},
                           headers=headers_for(profile))

    identifier = response.json()["identifier"]
    assert gateway.calls[0]["form"]["success_url"] == f"https://ug.example/#/payment/success?id={identifier}"


@pytest.mark.parametrize("message, code, suggestion", [
    (["Insufficient balance in merchant wallet"], "GATEWAY_BALANCE", "manual"),
    (["Invalid public key"], "CONFIG_ERROR", "manual"),
    (["Gateway under maintenance"], "MAINTENANCE", "manual"),
    (["Transaction limit exceeded"], "LIMIT_EXCEEDED", "manual"),
    (["Computer says no"], "UNKNOWN", "retry"),
    ([], "UNKNOWN", "retry"),
])
def test_gateway_rejection_marks_failed_and_classifies(client, db, gateway, make_profile, headers_for,
                                                       message, code, suggestion):
    gateway.reply = {"status": "error", "message": message}
    profile = make_profile()
    response = initiate(client, headers_for(profile))

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == (message[0] if message else "Payment initiation failed")
    assert body["paymentError"]["code"] == code
    assert body["paymentError"]["suggestion"] == suggestion

    txn = db.query(PaymentTransaction).one()
    assert txn.status == "failed"
    assert txn.api_response == gateway.reply
    assert LedgerService.get_balance(db, profile.id) == Decimal("0")


@pytest.mark.parametrize("error", [
    httpx.ConnectError("connection refused"),
    httpx.ReadTimeout("timed out"),
])
def test_transport_errors_are_network_errors(client, db, gateway, make_profile, headers_for, error):
    gateway.error = error
    profile = make_profile()
    response = initiate(client, headers_for(profile))

    assert response.status_code == 502
    assert response.json()["paymentError"]["code"] == "NETWORK_ERROR"
    assert db.query(PaymentTransaction).one().status == "failed"


def test_non_json_gateway_reply_fails_safe(client, db, gateway, make_profile, headers_for):
    gateway.reply = "<html>502 Bad Gateway</html>"
    gateway.status_code = 502
    response = initiate(client, headers_for(make_profile()))

    assert response.status_code == 400
    assert response.json()["paymentError"]["code"] == "UNKNOWN"
    assert db.query(PaymentTransaction).one().status == "failed"


def test_unconfigured_gateway_is_config_error(client, db, gateway, make_profile, headers_for, monkeypatch):
    monkeypatch.setattr(settings, "GATEWAY_SECRET_KEY", "")
    response = initiate(client, headers_for(make_profile()))

    assert response.status_code == 500
    assert response.json()["paymentError"]["code"] == "CONFIG_ERROR"
    assert db.query(PaymentTransaction).count() == 0
    assert gateway.calls == []


def test_missing_profile_is_profile_error(client, db, gateway, headers_for):
    class Ghost:
        id = "00000000-0000-0000-0000-000000000000"
        email = "ghost@example.com"

    response = initiate(client, headers_for(Ghost))

    assert response.status_code == 404
    assert response.json()["paymentError"]["code"] == "PROFILE_ERROR"
    assert db.query(PaymentTransaction).count() == 0


def test_end_to_end_topup(client, db, gateway, make_profile, headers_for):
    profile = make_profile(balance=25)
    response = initiate(client, headers_for(profile), amount=500)
    identifier = response.json()["identifier"]
    assert LedgerService.get_by_identifier(db, identifier).status == "pending"

    ipn = client.post("/api/payment/ipn", json={
        "identifier": identifier, "status": "completed", "transaction_id": "TX123", "gateway": "esewa",
    })

    assert ipn.status_code == 200
    db.expire_all()
    txn = LedgerService.get_by_identifier(db, identifier)
    assert txn.status == "completed"
    assert txn.gateway_transaction_id == "TX123"
    assert txn.payment_gateway == "esewa"
    assert LedgerService.get_balance(db, profile.id) == Decimal("525")

    mine = client.get(f"/api/payment/transactions/{identifier}", headers=headers_for(profile))
    assert mine.status_code == 200
    assert mine.json()["status"] == "completed"
    assert mine.json()["credits"] == 500


def test_reads_are_owner_scoped(client, gateway, make_profile, headers_for):
    owner, stranger = make_profile(), make_profile()
    identifier = initiate(client, headers_for(owner), amount=10).json()["identifier"]
    initiate(client, headers_for(owner), amount=20)

    assert client.get(f"/api/payment/transactions/{identifier}", headers=headers_for(stranger)).status_code == 404
    assert client.get("/api/payment/transactions", headers=headers_for(stranger)).json() == []

    history = client.get("/api/payment/transactions", headers=headers_for(owner)).json()
    assert [h["amount"] for h in history] == [20, 10]
    assert len(client.get("/api/payment/transactions?limit=1", headers=headers_for(owner)).json()) == 1
