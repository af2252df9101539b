import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Generator

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_mock"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_mock"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ticketing.config import settings
from ticketing.dependencies import get_payment_gateway
from ticketing.errors import ProviderError
from ticketing.main import app
from ticketing.models import Event, Order, Ticket, User
from ticketing.models.database import Base, get_db
from ticketing.services import stripe_service
from ticketing.services.payment_gateways import (
    CheckoutSession,
    CheckoutSessionStatus,
    PaymentIntentStatus,
    StripeGateway,
)
from ticketing.services.pricing import calculate_pricing

WEBHOOK_SECRET = "whsec_test_mock"

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeGateway:
    """In-memory payment provider; set ``error`` to simulate an outage."""

    def __init__(self):
        self.error: Exception | None = None
        self.intent_statuses: dict[str, str] = {}
        self.session_statuses: dict[str, str] = {}
        self.session_payment_intents: dict[str, str] = {}
        self.created_sessions: list[tuple[int, list]] = []
        self.calls: list[tuple[str, str]] = []

    def create_checkout_session(self, order, line_items):
        self.calls.append(("create_checkout_session", str(order.id)))
        if self.error:
            raise self.error
        self.created_sessions.append((order.id, line_items))
        session_id = f"cs_test_{order.id}"
        return CheckoutSession(
            session_id=session_id,
            checkout_url=f"https://checkout.stripe.com/c/pay/{session_id}",
        )

    def get_payment_intent(self, reference, opts=None):
        self.calls.append(("get_payment_intent", reference))
        if self.error:
            raise self.error
        return PaymentIntentStatus(status=self.intent_statuses.get(reference, "requires_payment_method"))

    def get_checkout_session(self, session_id):
        self.calls.append(("get_checkout_session", session_id))
        if self.error:
            raise self.error
        return CheckoutSessionStatus(
            payment_status=self.session_statuses.get(session_id, "unpaid"),
            payment_reference=self.session_payment_intents.get(session_id),
        )

    def verify_webhook_signature(self, body, sig_header, secret):
        return stripe_service.construct_webhook_event(body, sig_header, secret)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def provider_down(gateway: FakeGateway) -> FakeGateway:
    gateway.error = ProviderError("Request to Stripe timed out")
    return gateway


@pytest.fixture(scope="function")
def client(db: Session, gateway: FakeGateway) -> Generator[TestClient, None, None]:
    """Create a test client with database and payment gateway overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stripe_gateway(client: TestClient) -> StripeGateway:
    """Route the client through the real Stripe adapter; SDK calls are patched per test."""
    adapter = StripeGateway(success_url="https://example.com/ok", cancel_url="https://example.com/cancel")
    app.dependency_overrides[get_payment_gateway] = lambda: adapter
    return adapter


def _create_user(db: Session, email: str, display_name: str) -> User:
    user = User(email=email, display_name=display_name)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_user(db: Session) -> User:
    return _create_user(db, "buyer@example.com", "Buyer")


@pytest.fixture
def test_user2(db: Session) -> User:
    return _create_user(db, "other@example.com", "Other Buyer")


@pytest.fixture
def test_event(db: Session) -> Event:
    event = Event(title="Summer Gig", slug="summer-gig")
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@pytest.fixture
def make_ticket(db: Session, test_event: Event):
    """Factory for on-sale tickets; keyword arguments override the defaults."""

    def _make_ticket(**overrides) -> Ticket:
        now = datetime.now(timezone.utc)
        values = {
            "event_id": test_event.id,
            "title": "General Admission",
            "base_price_cents": 2500,
            "pricing_model": "fixed",
            "minimum_price_cents": 0,
            "tippable": False,
            "quantity": 100,
            "currency": "usd",
            "starts_at": now - timedelta(days=1),
            "ends_at": now + timedelta(days=30),
        }
        values.update(overrides)
        ticket = Ticket(**values)
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        return ticket

    return _make_ticket


@pytest.fixture
def fixed_ticket(make_ticket) -> Ticket:
    return make_ticket()


@pytest.fixture
def flexible_ticket(make_ticket) -> Ticket:
    return make_ticket(
        title="Pay What You Want",
        base_price_cents=2000,
        minimum_price_cents=1000,
        pricing_model="flexible",
        quantity=50,
    )


@pytest.fixture
def tippable_ticket(make_ticket) -> Ticket:
    return make_ticket(title="Supporter", base_price_cents=1500, tippable=True, quantity=25)


@pytest.fixture
def make_order(db: Session):
    """Insert an order directly, bypassing checkout."""

    def _make_order(user: User, ticket: Ticket, quantity: int = 1, **overrides) -> Order:
        snapshot = calculate_pricing(ticket, quantity) if ticket.pricing_model == "fixed" else calculate_pricing(
            ticket, quantity, custom_price_cents=ticket.base_price_cents
        )
        values = {
            "user_id": user.id,
            "ticket_id": ticket.id,
            "event_id": ticket.event_id,
            "quantity": quantity,
            "status": "pending",
            "pricing_snapshot": snapshot.as_dict(),
            "subtotal_cents": snapshot.subtotal_cents,
            "tip_cents": snapshot.tip_cents,
            "total_cents": snapshot.total_cents,
            "currency": ticket.currency,
        }
        values.update(overrides)
        order = Order(**values)
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make_order


def create_access_token(user_id: int, expires_in: timedelta = timedelta(hours=1)) -> str:
    return jwt.encode(
        {"sub": str(user_id), "type": "access", "exp": datetime.now(timezone.utc) + expires_in},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(test_user.id)}"}


@pytest.fixture
def auth_headers2(test_user2: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(test_user2.id)}"}


def _stripe_signature(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a ``stripe-signature`` header the way Stripe signs webhook bodies."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def stripe_signature():
    return _stripe_signature


@pytest.fixture
def post_webhook(client: TestClient):
    """POST a Stripe event to the webhook endpoint, signed unless ``signature`` is given."""

    def _post(event: dict, *, secret: str = WEBHOOK_SECRET, signature: str | None = None):
        payload = json.dumps(event).encode()
        header = signature if signature is not None else _stripe_signature(payload, secret=secret)
        return client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"stripe-signature": header, "Content-Type": "application/json"},
        )

    return _post
