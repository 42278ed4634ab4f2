import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

# Settings are read once at import time, so the environment goes first.
_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["GATEWAY_PUBLIC_KEY"] = "pk_test_123"
os.environ["GATEWAY_SECRET_KEY"] = "sk_test_456"
os.environ["PUBLIC_API_URL"] = "https://api.storefront.test"
os.environ["INITIATE_RATE_LIMIT"] = "100000"

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient

from storefront.config import get_settings
from storefront.database import Base, SessionLocal, engine, init_db
from storefront.dependencies import get_gateway_client
from storefront.main import app
from storefront.models.profile import Profile, UserRole
from storefront.services.gateway_client import GatewayClient
from storefront.utils.rate_limiter import reset_rate_limits

settings = get_settings()


@pytest.fixture(autouse=True)
def fresh_database():
    """Every test starts from empty tables."""
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_rate_limits()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_profile(db):
    def _make(balance=0, full_name="Aarav Sharma", username="aarav", email=None, admin=False):
        user_id = str(uuid.uuid4())
        profile = Profile(
            id=user_id,
            email=email or f"{user_id[:8]}@example.com",
            full_name=full_name,
            username=username,
            balance=balance,
        )
        db.add(profile)
        if admin:
            db.add(UserRole(id=str(uuid.uuid4()), user_id=user_id, role="admin"))
        db.commit()
        return profile
    return _make


def make_token(user_id, email="buyer@example.com", secret=None, expires_in=3600, audience="authenticated"):
    claims = {
        "sub": user_id,
        "email": email,
        "aud": audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, secret or settings.AUTH_JWT_SECRET, algorithm="HS256")


def auth_headers(profile):
    return {"Authorization": f"Bearer {make_token(profile.id, profile.email)}"}


class FakeGateway:
    """Records gateway calls and answers with a configurable reply."""

    def __init__(self):
        self.calls = []
        self.reply = {"status": "success", "redirect_url": "https://pay.apinepal.test/checkout/abc"}
        self.error = None
        self.status_code = 200

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.calls.append({"url": str(request.url), "form": form, "headers": dict(request.headers)})
        if self.error is not None:
            raise self.error
        if isinstance(self.reply, (dict, list)):
            return httpx.Response(self.status_code, json=self.reply)
        return httpx.Response(self.status_code, text=self.reply)

    def client(self) -> GatewayClient:
        return GatewayClient(settings, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def gateway():
    fake = FakeGateway()
    app.dependency_overrides[get_gateway_client] = fake.client
    return fake


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def token_factory():
    return make_token


@pytest.fixture
def headers_for():
    return auth_headers
