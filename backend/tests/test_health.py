"""
Tests for the service endpoints, request middleware, logging and cache helpers.
"""

import pytest
import structlog
from httpx import AsyncClient

from app.core.logging import mask_secrets, payment_context
from app.services.cache_service import get_cached_events, make_event_list_key


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_root_lists_endpoints(client: AsyncClient):
    response = await client.get("/")
    assert response.json()["endpoints"]["events"] == "/api/events"


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient):
    generated = await client.get("/api/health")
    assert generated.headers["X-Request-ID"]
    assert generated.headers["X-Response-Time"].endswith("ms")

    forwarded = await client.get("/api/health", headers={"X-Request-ID": "lb-1234"})
    assert forwarded.headers["X-Request-ID"] == "lb-1234"


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient, test_event, make_booking):
    await make_booking(test_event)

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert 'booking_attempts_total{status="success"}' in response.text


def test_event_list_key_ignores_order_and_empty_params():
    a = make_event_list_key({"page": 1, "search": None, "category": "concert"})
    b = make_event_list_key({"category": "concert", "page": 1})
    assert a == b == "events:list:category=concert&page=1"


@pytest.mark.asyncio
async def test_cache_is_skipped_when_disabled():
    assert await get_cached_events({"page": 1}) is None


def test_log_lines_never_carry_provider_secrets():
    event = mask_secrets(
        None,
        "info",
        {"event": "payment_intent_created", "client_secret": "pi_1_secret_abc", "intent_id": "pi_1"},
    )
    assert event == {"event": "payment_intent_created", "client_secret": "***", "intent_id": "pi_1"}


def test_payment_context_is_bound_only_inside_the_block():
    with payment_context(booking_id=7, intent_id="pi_1"):
        bound = structlog.contextvars.get_contextvars()
        assert bound["booking_id"] == 7
        assert bound["intent_id"] == "pi_1"

    assert "booking_id" not in structlog.contextvars.get_contextvars()

    with payment_context(booking_id=8):
        assert "intent_id" not in structlog.contextvars.get_contextvars()
