"""
Tests for booking endpoints: creation, access control and cancellation.
"""

import re

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, auth_headers, test_event, test_user):
    """A new booking is pending and does not touch inventory yet."""
    response = await client.post(
        "/api/bookings",
        json={
            "eventId": test_event.id,
            "tickets": 2,
            "attendeeDetails": [{"name": "Ann", "email": "ann@example.com"}],
        },
        headers=auth_headers,
    )
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["eventId"] == test_event.id
    assert data["userId"] == test_user.id
    assert data["tickets"] == 2
    assert data["totalAmount"] == 51.0
    assert data["paymentStatus"] == "pending"
    assert data["status"] == "confirmed"
    assert data["paymentMethod"] == "stripe"
    assert data["reminderSent"] is False
    assert data["attendeeDetails"] == [{"name": "Ann", "email": "ann@example.com"}]
    assert re.fullmatch(r"EVT-[0-9A-Z]+-[0-9A-Z]{6}", data["bookingReference"])
    assert data["event"]["title"] == "Test Concert"
    assert data["user"]["email"] == "test@example.com"

    event_response = await client.get(f"/api/events/{test_event.id}")
    assert event_response.json()["data"]["availableTickets"] == 100


@pytest.mark.asyncio
async def test_booking_references_are_unique(client: AsyncClient, test_event, make_booking):
    first = await make_booking(test_event)
    second = await make_booking(test_event)
    assert first["bookingReference"] != second["bookingReference"]


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, test_event):
    response = await client.post(
        "/api/bookings", json={"eventId": test_event.id, "tickets": 1}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_not_enough_tickets(client: AsyncClient, auth_headers, last_ticket_event):
    response = await client.post(
        "/api/bookings",
        json={"eventId": last_ticket_event.id, "tickets": 2},
        headers=auth_headers,
    )
    assert response.status_code == 409
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_create_booking_sold_out(client: AsyncClient, auth_headers, sold_out_event):
    response = await client.post(
        "/api/bookings",
        json={"eventId": sold_out_event.id, "tickets": 1},
        headers=auth_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_create_booking_for_inactive_event(client: AsyncClient, auth_headers, event_factory):
    cancelled = await event_factory(status="cancelled")
    response = await client.post(
        "/api/bookings",
        json={"eventId": cancelled.id, "tickets": 1},
        headers=auth_headers,
    )
    assert response.status_code == 409
    assert response.json()["message"] == "Event is not available for booking"


@pytest.mark.asyncio
async def test_create_booking_nonexistent_event(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/bookings", json={"eventId": 99999, "tickets": 1}, headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_booking_zero_tickets(client: AsyncClient, auth_headers, test_event):
    response = await client.post(
        "/api/bookings", json={"eventId": test_event.id, "tickets": 0}, headers=auth_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_my_bookings_only_lists_own(
    client: AsyncClient, auth_headers, other_headers, test_event, make_booking
):
    mine = await make_booking(test_event)
    await make_booking(test_event, headers=other_headers)

    response = await client.get("/api/bookings/my-bookings", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["data"][0]["id"] == mine["id"]
    assert body["data"][0]["event"]["title"] == "Test Concert"


@pytest.mark.asyncio
async def test_get_booking_access(
    client: AsyncClient, auth_headers, other_headers, admin_headers, test_event, make_booking
):
    booking = await make_booking(test_event)

    own = await client.get(f"/api/bookings/{booking['id']}", headers=auth_headers)
    assert own.status_code == 200
    assert own.json()["data"]["event"]["id"] == test_event.id

    foreign = await client.get(f"/api/bookings/{booking['id']}", headers=other_headers)
    assert foreign.status_code == 403

    admin = await client.get(f"/api/bookings/{booking['id']}", headers=admin_headers)
    assert admin.status_code == 200


@pytest.mark.asyncio
async def test_get_nonexistent_booking(client: AsyncClient, auth_headers):
    response = await client.get("/api/bookings/99999", headers=auth_headers)
    assert response.status_code == 404
    assert response.json()["message"] == "Booking not found"


@pytest.mark.asyncio
async def test_admin_lists_all_bookings(
    client: AsyncClient, auth_headers, other_headers, admin_headers, test_event, make_booking
):
    await make_booking(test_event)
    await make_booking(test_event, headers=other_headers)

    response = await client.get("/api/bookings", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert {b["user"]["email"] for b in body["data"]} == {"test@example.com", "other@example.com"}

    forbidden = await client.get("/api/bookings", headers=auth_headers)
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_cancel_pending_booking_leaves_inventory(
    client: AsyncClient, auth_headers, test_event, make_booking, start_payment, fake_gateway
):
    """Unpaid tickets were never taken, so nothing is given back."""
    booking = await make_booking(test_event, tickets=3)
    intent_id = await start_payment(booking)

    response = await client.put(f"/api/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "cancelled"
    assert data["paymentStatus"] == "failed"
    assert fake_gateway.cancelled == [intent_id]
    assert fake_gateway.refunds == []

    event_response = await client.get(f"/api/events/{test_event.id}")
    assert event_response.json()["data"]["availableTickets"] == 100

    notifications = await client.get("/api/notifications", headers=auth_headers)
    latest = notifications.json()["data"][0]
    assert latest["type"] == "cancellation"
    assert booking["bookingReference"] in latest["message"]


@pytest.mark.asyncio
async def test_cancel_paid_booking_refunds_and_restores(
    client: AsyncClient, auth_headers, test_event, make_booking, pay_booking, fake_gateway
):
    booking = await make_booking(test_event, tickets=3)
    paid = await pay_booking(booking)
    assert paid.status_code == 200

    event_response = await client.get(f"/api/events/{test_event.id}")
    assert event_response.json()["data"]["availableTickets"] == 97

    response = await client.put(f"/api/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "cancelled"
    assert data["paymentStatus"] == "refunded"
    assert fake_gateway.refunds == [data["paymentIntentId"]]

    event_response = await client.get(f"/api/events/{test_event.id}")
    assert event_response.json()["data"]["availableTickets"] == 100


@pytest.mark.asyncio
async def test_cancel_reopens_sold_out_event(
    client: AsyncClient, auth_headers, last_ticket_event, make_booking, pay_booking
):
    booking = await make_booking(last_ticket_event)
    await pay_booking(booking)

    sold_out = await client.get(f"/api/events/{last_ticket_event.id}")
    assert sold_out.json()["data"]["status"] == "sold-out"
    assert sold_out.json()["data"]["availableTickets"] == 0

    await client.put(f"/api/bookings/{booking['id']}/cancel", headers=auth_headers)

    reopened = await client.get(f"/api/events/{last_ticket_event.id}")
    assert reopened.json()["data"]["status"] == "active"
    assert reopened.json()["data"]["availableTickets"] == 1


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, test_event, make_booking):
    booking = await make_booking(test_event)
    await client.put(f"/api/bookings/{booking['id']}/cancel", headers=auth_headers)

    response = await client.put(f"/api/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["message"] == "Booking is already cancelled"


@pytest.mark.asyncio
async def test_cancel_someone_elses_booking(
    client: AsyncClient, other_headers, admin_headers, test_event, make_booking
):
    booking = await make_booking(test_event)

    forbidden = await client.put(f"/api/bookings/{booking['id']}/cancel", headers=other_headers)
    assert forbidden.status_code == 403

    by_admin = await client.put(f"/api/bookings/{booking['id']}/cancel", headers=admin_headers)
    assert by_admin.status_code == 200


@pytest.mark.asyncio
async def test_cancel_when_payment_just_succeeded(
    client: AsyncClient, auth_headers, test_event, make_booking, start_payment, fake_gateway
):
    """A charge that succeeded but is not reconciled yet blocks the cancel."""
    booking = await make_booking(test_event)
    intent_id = await start_payment(booking)
    fake_gateway.succeed(intent_id)

    response = await client.put(f"/api/bookings/{booking['id']}/cancel", headers=auth_headers)
    assert response.status_code == 409

    still_open = await client.get(f"/api/bookings/{booking['id']}", headers=auth_headers)
    assert still_open.json()["data"]["status"] == "confirmed"
    assert still_open.json()["data"]["paymentStatus"] == "pending"


@pytest.mark.asyncio
async def test_manual_payment_update_marks_failed(
    client: AsyncClient, auth_headers, test_event, make_booking
):
    booking = await make_booking(test_event)

    response = await client.put(
        f"/api/bookings/{booking['id']}/payment",
        json={"paymentStatus": "failed"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["data"]["paymentStatus"] == "failed"

    retry = await client.post(
        "/api/payments/create-intent", json={"bookingId": booking["id"]}, headers=auth_headers
    )
    assert retry.status_code == 409


@pytest.mark.asyncio
async def test_manual_payment_update_requires_provider_confirmation(
    client: AsyncClient, auth_headers, test_event, make_booking, start_payment, fake_gateway
):
    booking = await make_booking(test_event, tickets=2)
    intent_id = await start_payment(booking)

    unpaid = await client.put(
        f"/api/bookings/{booking['id']}/payment",
        json={"paymentStatus": "completed", "paymentIntentId": intent_id},
        headers=auth_headers,
    )
    assert unpaid.status_code == 409
    assert unpaid.json()["message"] == "Payment not completed"

    fake_gateway.succeed(intent_id)
    paid = await client.put(
        f"/api/bookings/{booking['id']}/payment",
        json={"paymentStatus": "completed", "paymentIntentId": intent_id},
        headers=auth_headers,
    )
    assert paid.status_code == 200
    assert paid.json()["data"]["paymentStatus"] == "completed"

    event_response = await client.get(f"/api/events/{test_event.id}")
    assert event_response.json()["data"]["availableTickets"] == 98


@pytest.mark.asyncio
async def test_manual_payment_update_rejects_unknown_status(
    client: AsyncClient, auth_headers, test_event, make_booking
):
    booking = await make_booking(test_event)
    response = await client.put(
        f"/api/bookings/{booking['id']}/payment",
        json={"paymentStatus": "refunded"},
        headers=auth_headers,
    )
    assert response.status_code == 422
