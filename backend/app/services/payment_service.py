"""
Payment orchestration: intent creation and reconciliation.

Reconciliation has three entry points (client verification, provider
webhook, manual status update) that may race on the same booking and may
each be delivered more than once. All of them funnel into
`complete_payment`, whose first step is a compare-and-swap of
payment_status pending -> completed. Only the caller that wins that swap
touches inventory or notifies the user; everyone else sees a no-op.

Provider calls happen before any local write in the same request, so a
provider failure or timeout leaves the booking exactly as it was.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from app.core.logging import get_logger, payment_context
from app.core.metrics import record_reconciliation
from app.infrastructure.payment_gateway import PaymentGateway, PaymentIntent, WebhookEvent
from app.models.booking import Booking
from app.models.enums import BookingStatus, NotificationType, PaymentStatus
from app.models.event import Event
from app.models.user import User
from app.services.booking_service import ensure_booking_access, load_booking
from app.services.inventory_service import decrement_tickets
from app.services.notification_service import add_notification
from app.services.payment_state import transition_payment

logger = get_logger(__name__)
settings = get_settings()

WEBHOOK_SUCCEEDED = "payment_intent.succeeded"
WEBHOOK_FAILED = "payment_intent.payment_failed"


class OversoldError(InvalidStateError):
    def __init__(self, booking: Booking):
        self.booking = booking
        super().__init__(
            "Tickets sold out before the payment was confirmed; the payment has been refunded"
        )


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def intent_matches_booking(intent: PaymentIntent, booking: Booking) -> bool:
    """The intent was created for this booking and charges its full amount."""
    return (
        intent.id == booking.payment_intent_id
        and str(intent.metadata.get("bookingId", "")) == str(booking.id)
        and intent.amount == to_minor_units(booking.total_amount)
    )


def ensure_intent_matches(intent: PaymentIntent, booking: Booking) -> None:
    if not intent_matches_booking(intent, booking):
        logger.warning(
            "payment_intent_mismatch",
            booking_id=booking.id,
            intent_id=intent.id,
            intent_amount=intent.amount,
            intent_booking=intent.metadata.get("bookingId"),
        )
        raise InvalidStateError("Payment intent does not match this booking")


async def create_payment_intent(
    db: AsyncSession, gateway: PaymentGateway, booking_id: int, user: User
) -> PaymentIntent:
    """
    Start (or resume) payment for a booking the caller owns.

    An intent that can still be paid is reused. New intents carry an
    idempotency key derived from the booking reference, so a retry after a
    failed save gets the same provider intent back.
    """
    booking = await load_booking(db, booking_id)
    if booking.user_id != user.id:
        raise ForbiddenError("Not authorized")

    if booking.payment_status == PaymentStatus.COMPLETED.value:
        raise InvalidStateError("Booking already paid")
    if booking.status != BookingStatus.CONFIRMED.value:
        raise InvalidStateError("Booking has been cancelled")
    if booking.payment_status != PaymentStatus.PENDING.value:
        raise InvalidStateError(f"Booking payment is {booking.payment_status}")

    event = await db.get(Event, booking.event_id)
    if event.available_tickets < booking.tickets:
        raise InvalidStateError("Not enough tickets available")

    if booking.payment_intent_id:
        existing = await gateway.retrieve_intent(booking.payment_intent_id)
        if existing.is_open:
            logger.info("payment_intent_reused", booking_id=booking.id, intent_id=existing.id)
            return existing

    intent = await gateway.create_intent(
        amount=to_minor_units(booking.total_amount),
        currency=settings.STRIPE_CURRENCY,
        metadata={
            "bookingId": str(booking.id),
            "userId": str(user.id),
            "eventId": str(booking.event_id),
        },
        idempotency_key=f"booking-{booking.booking_reference}-intent",
    )

    booking.payment_intent_id = intent.id
    await db.flush()

    logger.info(
        "payment_intent_created",
        booking_id=booking.id,
        intent_id=intent.id,
        amount=intent.amount,
    )
    return intent


async def complete_payment(
    db: AsyncSession, gateway: PaymentGateway, booking: Booking, source: str
) -> bool:
    """
    Apply a succeeded payment to a booking, at most once.

    Returns True if this call performed the transition, False if the
    booking had already been reconciled (or cancelled). Raises OversoldError
    when the event can no longer cover the booking; the booking is then
    refunded rather than overselling.
    """
    if booking.payment_status != PaymentStatus.PENDING.value or (
        booking.status != BookingStatus.CONFIRMED.value
    ):
        record_reconciliation(source, "duplicate")
        return False

    won = await transition_payment(db, booking, PaymentStatus.COMPLETED, require_confirmed=True)
    if not won:
        record_reconciliation(source, "duplicate")
        logger.info("payment_already_reconciled", booking_id=booking.id, source=source)
        return False

    if not await decrement_tickets(db, booking.event_id, booking.tickets):
        await gateway.refund(
            booking.payment_intent_id,
            idempotency_key=f"booking-{booking.booking_reference}-refund",
        )
        await transition_payment(
            db, booking, PaymentStatus.REFUNDED, booking_status=BookingStatus.REFUNDED
        )
        record_reconciliation(source, "oversold")
        logger.warning(
            "payment_refunded_oversold",
            booking_id=booking.id,
            event_id=booking.event_id,
            tickets=booking.tickets,
        )
        # The provider refund already happened; keep it recorded when the error rolls back
        await db.commit()
        raise OversoldError(booking)

    event = await db.get(Event, booking.event_id)
    await add_notification(
        db,
        booking.user_id,
        NotificationType.BOOKING,
        f"Your booking for {event.title} has been confirmed!",
        event_id=event.id,
    )

    record_reconciliation(source, "completed")
    logger.info(
        "payment_completed",
        booking_id=booking.id,
        event_id=booking.event_id,
        tickets=booking.tickets,
        source=source,
    )
    return True


async def fail_payment(db: AsyncSession, booking: Booking, source: str) -> bool:
    """pending -> failed; a no-op for bookings that already moved on."""
    if booking.payment_status != PaymentStatus.PENDING.value:
        return False
    won = await transition_payment(db, booking, PaymentStatus.FAILED)
    if won:
        record_reconciliation(source, "failed")
        logger.info("payment_failed", booking_id=booking.id, source=source)
    return won


async def _booking_for_intent(db: AsyncSession, intent_id: str) -> Optional[Booking]:
    result = await db.execute(select(Booking).where(Booking.payment_intent_id == intent_id))
    return result.scalar_one_or_none()


async def verify_payment(
    db: AsyncSession, gateway: PaymentGateway, intent_id: str, user: User
) -> Booking:
    """Client-initiated reconciliation after the checkout form completes."""
    booking = await _booking_for_intent(db, intent_id)
    if booking is None:
        raise NotFoundError("Booking for payment intent", intent_id)
    ensure_booking_access(booking, user)

    with payment_context(booking.id, intent_id):
        intent = await gateway.retrieve_intent(intent_id)
        ensure_intent_matches(intent, booking)
        if not intent.succeeded:
            raise InvalidStateError("Payment not completed")

        await complete_payment(db, gateway, booking, source="verify")
    return booking


async def _apply_webhook(
    db: AsyncSession, gateway: PaymentGateway, event: WebhookEvent, booking: Booking
) -> None:
    if event.type == WEBHOOK_FAILED:
        await fail_payment(db, booking, source="webhook")
        return

    # The event body only names the intent; amount and owner come from the provider
    intent = await gateway.retrieve_intent(event.intent_id)
    if not intent.succeeded or not intent_matches_booking(intent, booking):
        record_reconciliation("webhook", "mismatch")
        logger.warning("webhook_intent_rejected", intent_status=intent.status)
        return
    try:
        await complete_payment(db, gateway, booking, source="webhook")
    except OversoldError:
        pass  # refunded and recorded; acknowledge delivery


async def handle_webhook(
    db: AsyncSession, gateway: PaymentGateway, payload: bytes, signature: Optional[str]
) -> WebhookEvent:
    """
    Verify and apply a provider webhook. The signature is checked before
    the payload is trusted; an oversold booking is refunded and still
    acknowledged so the provider stops redelivering.
    """
    event = gateway.parse_webhook(payload, signature)
    logger.info("webhook_received", webhook_id=event.id, type=event.type, intent_id=event.intent_id)

    if event.type not in (WEBHOOK_SUCCEEDED, WEBHOOK_FAILED) or not event.intent_id:
        return event

    booking = await _booking_for_intent(db, event.intent_id)
    if booking is None:
        logger.warning("webhook_unknown_intent", intent_id=event.intent_id)
        return event

    with payment_context(booking.id, event.intent_id):
        await _apply_webhook(db, gateway, event, booking)
    return event


async def update_payment_status(
    db: AsyncSession,
    gateway: PaymentGateway,
    booking_id: int,
    user: User,
    payment_status: str,
    intent_id: Optional[str] = None,
) -> Booking:
    """
    Manual status update from the booking page. "completed" is only
    accepted once the provider confirms the booking's own intent succeeded.
    An intent id in the request must be the one created for this booking;
    it is never attached here.
    """
    booking = await load_booking(db, booking_id)
    ensure_booking_access(booking, user, action="update")

    if intent_id and intent_id != booking.payment_intent_id:
        raise InvalidStateError("Payment intent does not belong to this booking")

    with payment_context(booking.id, booking.payment_intent_id or None):
        if payment_status == PaymentStatus.COMPLETED.value:
            if not booking.payment_intent_id:
                raise InvalidStateError("Booking has no payment intent")
            intent = await gateway.retrieve_intent(booking.payment_intent_id)
            ensure_intent_matches(intent, booking)
            if not intent.succeeded:
                raise InvalidStateError("Payment not completed")
            await complete_payment(db, gateway, booking, source="manual")
        else:
            await fail_payment(db, booking, source="manual")

    return booking
