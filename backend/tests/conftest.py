"""
Pytest fixtures for the test database, HTTP client, payment gateway and users.

Each test gets a fresh schema. The default database is in-memory SQLite
(aiosqlite); set TEST_DATABASE_URL to run against PostgreSQL instead.
"""

import dataclasses
import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

# Settings are read at import time; keep the app off Redis and real Stripe keys
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_fake")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")

import pytest
import pytest_asyncio
import stripe
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.deps import get_payment_gateway
from app.core.exceptions import ExternalServiceError
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.session import get_db
from app.infrastructure.payment_gateway import PaymentGateway, PaymentIntent, StripeGateway
from app.main import app
from app.models.enums import UserRole
from app.models.event import Event
from app.models.user import User

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")
WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]


class FakePaymentGateway(PaymentGateway):
    """
    In-memory stand-in for the provider. Intents start unpaid; tests move
    them with `succeed` / `set_status`. Webhook signatures are verified with
    the real Stripe client against WEBHOOK_SECRET.
    """

    def __init__(self):
        self.intents: dict[str, PaymentIntent] = {}
        self.idempotency_keys: dict[str, str] = {}
        self.refunds: list[str] = []
        self.cancelled: list[str] = []
        self.fail_with: Optional[Exception] = None
        self._webhooks = StripeGateway(stripe.StripeClient("sk_test_fake"), WEBHOOK_SECRET)

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def set_status(self, intent_id: str, status: str) -> None:
        self.intents[intent_id] = dataclasses.replace(self.intents[intent_id], status=status)

    def succeed(self, intent_id: str) -> None:
        self.set_status(intent_id, "succeeded")

    async def create_intent(self, amount, currency, metadata, idempotency_key):
        self._maybe_fail()
        if idempotency_key in self.idempotency_keys:
            return self.intents[self.idempotency_keys[idempotency_key]]
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = PaymentIntent(
            id=intent_id,
            status="requires_payment_method",
            amount=amount,
            client_secret=f"{intent_id}_secret_abc",
            metadata=metadata,
        )
        self.intents[intent_id] = intent
        self.idempotency_keys[idempotency_key] = intent_id
        return intent

    async def retrieve_intent(self, intent_id):
        self._maybe_fail()
        if intent_id not in self.intents:
            raise ExternalServiceError("No such payment_intent")
        return self.intents[intent_id]

    async def cancel_intent(self, intent_id):
        self._maybe_fail()
        self.set_status(intent_id, "canceled")
        self.cancelled.append(intent_id)
        return self.intents[intent_id]

    async def refund(self, intent_id, idempotency_key):
        self._maybe_fail()
        if idempotency_key not in self.idempotency_keys:
            self.idempotency_keys[idempotency_key] = intent_id
            self.refunds.append(intent_id)
        return f"re_{intent_id}"

    def parse_webhook(self, payload, signature):
        return self._webhooks.parse_webhook(payload, signature)


def sign_webhook(payload: dict, secret: str = WEBHOOK_SECRET) -> tuple[bytes, str]:
    """Body and Stripe-Signature header for a webhook delivery."""
    body = json.dumps(payload).encode("utf-8")
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + body
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return body, f"t={timestamp},v1={signature}"


def intent_event(event_type: str, intent_id: str, event_id: str = "evt_test_1") -> dict:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "livemode": False,
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "status": "succeeded" if event_type.endswith("succeeded") else "requires_payment_method",
                "amount": 100,
            }
        },
    }


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    options = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **options)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def fake_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, fake_gateway: FakePaymentGateway
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session and payment gateway overridden."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, name: str, email: str, role: UserRole) -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=hash_password("testpassword123"),
        role=role.value,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Test User", "test@example.com", UserRole.USER)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Other User", "other@example.com", UserRole.USER)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "Admin", "admin@example.com", UserRole.ADMIN)


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    return _headers(test_user)


@pytest_asyncio.fixture
async def other_headers(other_user: User) -> dict:
    return _headers(other_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    return _headers(admin_user)


async def _create_event(db_session: AsyncSession, **overrides) -> Event:
    fields = dict(
        title="Test Concert",
        description="A test event",
        category="concert",
        venue_name="Test Arena",
        venue_address="1 Main St",
        venue_city="Springfield",
        venue_state="IL",
        venue_zip_code="62701",
        date=datetime.now(timezone.utc) + timedelta(days=30),
        time="19:30",
        image="",
        total_tickets=100,
        available_tickets=100,
        price=Decimal("25.50"),
        organizer="Test Promotions",
        status="active",
        tags=["music"],
        featured=False,
    )
    fields.update(overrides)
    event = Event(**fields)
    db_session.add(event)
    await db_session.commit()
    await db_session.refresh(event)
    return event


@pytest.fixture
def event_factory(db_session: AsyncSession):
    async def _make(**overrides) -> Event:
        return await _create_event(db_session, **overrides)

    return _make


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession) -> Event:
    """Active event with 100 tickets at 25.50."""
    return await _create_event(db_session)


@pytest_asyncio.fixture
async def sold_out_event(db_session: AsyncSession) -> Event:
    return await _create_event(
        db_session,
        title="Sold Out Show",
        total_tickets=50,
        available_tickets=0,
        status="sold-out",
    )


@pytest_asyncio.fixture
async def last_ticket_event(db_session: AsyncSession) -> Event:
    """Active event with a single ticket left."""
    return await _create_event(
        db_session,
        title="Intimate Gig",
        total_tickets=10,
        available_tickets=1,
        price=Decimal("40.00"),
    )


@pytest.fixture
def make_booking(client: AsyncClient, auth_headers: dict):
    """POST /api/bookings and return the created booking JSON."""

    async def _make(event: Event, tickets: int = 1, headers: Optional[dict] = None) -> dict:
        response = await client.post(
            "/api/bookings",
            json={"eventId": event.id, "tickets": tickets},
            headers=headers or auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _make


@pytest.fixture
def start_payment(client: AsyncClient, auth_headers: dict):
    """Create a payment intent for a booking and return its id."""

    async def _start(booking: dict, headers: Optional[dict] = None) -> str:
        response = await client.post(
            "/api/payments/create-intent",
            json={"bookingId": booking["id"]},
            headers=headers or auth_headers,
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]["paymentIntentId"]

    return _start


@pytest.fixture
def pay_booking(client: AsyncClient, auth_headers: dict, fake_gateway: FakePaymentGateway, start_payment):
    """Run a booking through intent creation, a successful charge and verification."""

    async def _pay(booking: dict, headers: Optional[dict] = None):
        headers = headers or auth_headers
        intent_id = await start_payment(booking, headers)
        fake_gateway.succeed(intent_id)
        return await client.post(
            "/api/payments/verify",
            json={"paymentIntentId": intent_id},
            headers=headers,
        )

    return _pay


@pytest.fixture
def signed_webhook():
    """Build a signed payment_intent webhook delivery: (body, headers)."""

    def _build(event_type: str, intent_id: str, event_id: str = "evt_test_1", secret: str = WEBHOOK_SECRET):
        body, signature = sign_webhook(intent_event(event_type, intent_id, event_id), secret)
        return body, {"Stripe-Signature": signature, "Content-Type": "application/json"}

    return _build
