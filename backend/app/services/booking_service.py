"""
Booking service: creation, lookup and cancellation.

Booking creation only *checks* availability; tickets are taken off the
event when payment is reconciled (app.services.payment_service), through the
conditional decrement in app.services.inventory_service. Two bookings may
therefore pass the check for the last ticket; the one whose payment
reconciles second is refunded instead of overselling.

Cancellation restores inventory only when the payment had completed, i.e.
only when tickets were actually taken.
"""

import secrets
import string
import time
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    ForbiddenError,
    InsufficientTicketsError,
    InvalidStateError,
    NotFoundError,
)
from app.core.logging import get_logger
from app.core.metrics import booking_cancellations, record_booking_attempt
from app.infrastructure.payment_gateway import PaymentGateway
from app.models.booking import Booking
from app.models.enums import BookingStatus, EventStatus, NotificationType, PaymentStatus
from app.models.event import Event
from app.models.user import User
from app.schemas.booking import BookingCreate
from app.services.inventory_service import restore_tickets
from app.services.notification_service import add_notification
from app.services.payment_state import transition_payment

logger = get_logger(__name__)

MAX_REFERENCE_ATTEMPTS = 3
_BASE36 = string.digits + string.ascii_uppercase


def _base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_booking_reference() -> str:
    """EVT-<base36 millisecond timestamp>-<6 random base36 chars>."""
    timestamp = _base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"EVT-{timestamp}-{random_part}"


def ensure_booking_access(booking: Booking, user: User, action: str = "access") -> None:
    """Owner or admin."""
    if booking.user_id != user.id and not user.is_admin:
        raise ForbiddenError(f"Not authorized to {action} this booking")


async def load_booking(db: AsyncSession, booking_id: int, with_event: bool = False) -> Booking:
    stmt = select(Booking).where(Booking.id == booking_id)
    if with_event:
        # populate_existing: the booking may already sit in the session without its event
        stmt = stmt.options(selectinload(Booking.event)).execution_options(populate_existing=True)
    booking = (await db.execute(stmt)).scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking", booking_id)
    return booking


async def create_booking(db: AsyncSession, user: User, booking_data: BookingCreate) -> Booking:
    """
    Create a pending booking after checking the event is active and can
    cover the request. total_amount is fixed here.
    """
    event = await db.get(Event, booking_data.event_id)
    if not event:
        raise NotFoundError("Event", booking_data.event_id)

    if event.available_tickets < booking_data.tickets:
        record_booking_attempt("unavailable")
        logger.warning(
            "booking_failed_no_tickets",
            event_id=event.id,
            requested=booking_data.tickets,
            available=event.available_tickets,
        )
        raise InsufficientTicketsError(booking_data.tickets, event.available_tickets)

    if event.status != EventStatus.ACTIVE.value:
        record_booking_attempt("inactive")
        raise InvalidStateError("Event is not available for booking")

    total_amount = Decimal(str(event.price)) * booking_data.tickets
    attendees = [a.model_dump() for a in booking_data.attendee_details]

    reference = generate_booking_reference()
    for attempt in range(1, MAX_REFERENCE_ATTEMPTS):
        taken = (
            await db.execute(select(Booking.id).where(Booking.booking_reference == reference))
        ).first()
        if taken is None:
            break
        logger.warning("booking_reference_collision", attempt=attempt)
        reference = generate_booking_reference()

    booking = Booking(
        user_id=user.id,
        event_id=event.id,
        tickets=booking_data.tickets,
        total_amount=total_amount,
        attendee_details=attendees,
        payment_method=booking_data.payment_method.value,
        payment_status=PaymentStatus.PENDING.value,
        status=BookingStatus.CONFIRMED.value,
        booking_reference=reference,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        reference=booking.booking_reference,
        user_id=user.id,
        event_id=event.id,
        tickets=booking.tickets,
        total_amount=str(booking.total_amount),
    )
    return booking


async def get_booking(db: AsyncSession, booking_id: int, user: User) -> Booking:
    booking = await load_booking(db, booking_id, with_event=True)
    ensure_booking_access(booking, user)
    return booking


async def get_user_bookings(db: AsyncSession, user_id: int) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .options(selectinload(Booking.event))
        .execution_options(populate_existing=True)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def get_all_bookings(db: AsyncSession) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .options(selectinload(Booking.event), selectinload(Booking.user))
        .execution_options(populate_existing=True)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def _cancel_unpaid(db: AsyncSession, booking: Booking) -> bool:
    """Failed payment: only the lifecycle status moves."""
    result = await db.execute(
        update(Booking)
        .where(
            Booking.id == booking.id,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.payment_status == PaymentStatus.FAILED.value,
        )
        .values(status=BookingStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(booking)
    return result.rowcount == 1


async def cancel_booking(
    db: AsyncSession,
    gateway: PaymentGateway,
    booking_id: int,
    user: User,
) -> Booking:
    """
    Cancel a booking.

    - completed payment: refund at the provider, mark refunded, give the
      tickets back to the event
    - pending payment: cancel any open intent, mark failed, inventory untouched
    - failed payment: status only
    """
    booking = await load_booking(db, booking_id)
    ensure_booking_access(booking, user, action="cancel")

    if booking.status != BookingStatus.CONFIRMED.value:
        raise InvalidStateError("Booking is already cancelled")

    observed_payment = booking.payment_status

    if observed_payment == PaymentStatus.COMPLETED.value:
        if booking.payment_intent_id:
            await gateway.refund(
                booking.payment_intent_id,
                idempotency_key=f"booking-{booking.booking_reference}-refund",
            )
        won = await transition_payment(
            db,
            booking,
            PaymentStatus.REFUNDED,
            booking_status=BookingStatus.CANCELLED,
            require_confirmed=True,
        )
        if won:
            await restore_tickets(db, booking.event_id, booking.tickets)

    elif observed_payment == PaymentStatus.PENDING.value:
        if booking.payment_intent_id:
            intent = await gateway.retrieve_intent(booking.payment_intent_id)
            if intent.succeeded:
                raise InvalidStateError(
                    "Payment for this booking has just completed; please retry the cancellation"
                )
            if intent.is_open:
                await gateway.cancel_intent(booking.payment_intent_id)
        won = await transition_payment(
            db,
            booking,
            PaymentStatus.FAILED,
            booking_status=BookingStatus.CANCELLED,
            require_confirmed=True,
        )

    else:
        won = await _cancel_unpaid(db, booking)

    if not won:
        raise InvalidStateError("Booking was modified concurrently; please retry")

    event = await db.get(Event, booking.event_id)
    await add_notification(
        db,
        booking.user_id,
        NotificationType.CANCELLATION,
        f"Your booking {booking.booking_reference} for {event.title} has been cancelled.",
        event_id=booking.event_id,
    )

    booking_cancellations.labels(payment_status=observed_payment).inc()
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        user_id=user.id,
        event_id=booking.event_id,
        previous_payment_status=observed_payment,
        tickets_restored=booking.tickets if observed_payment == PaymentStatus.COMPLETED.value else 0,
    )
    return booking
