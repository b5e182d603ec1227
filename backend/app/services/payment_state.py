"""
Payment status lifecycle for bookings.

Transitions are validated here and then applied with a guarded UPDATE
(`... WHERE payment_status = :from_status`), so two callers racing on the
same booking (webhook and client verification) cannot both win.
"""

from typing import Dict, Optional, Set

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidTransitionError
from app.models.booking import Booking
from app.models.enums import BookingStatus, PaymentStatus


class PaymentStateMachine:
    """Legal payment status transitions."""

    _ALLOWED_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
        PaymentStatus.PENDING: {
            PaymentStatus.COMPLETED,
            PaymentStatus.FAILED,
        },
        PaymentStatus.COMPLETED: {
            PaymentStatus.REFUNDED,
        },
        PaymentStatus.FAILED: set(),
        PaymentStatus.REFUNDED: set(),
    }

    @classmethod
    def can_transition(cls, from_status: PaymentStatus, to_status: PaymentStatus) -> bool:
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)
        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status: PaymentStatus, to_status: PaymentStatus) -> None:
        """Raises InvalidTransitionError if the transition is illegal."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_state=from_status.value, to_state=to_status.value)

    @staticmethod
    def _ensure_valid_status(status: PaymentStatus) -> None:
        if not isinstance(status, PaymentStatus):
            raise TypeError(f"Expected PaymentStatus, got {type(status)}")


async def transition_payment(
    db: AsyncSession,
    booking: Booking,
    to_status: PaymentStatus,
    *,
    booking_status: Optional[BookingStatus] = None,
    require_confirmed: bool = False,
) -> bool:
    """
    Compare-and-swap booking.payment_status from its currently observed value
    to `to_status`, optionally moving booking.status along with it.

    Returns False when another writer got there first (the row no longer
    holds the observed status); the booking is refreshed either way.
    """
    from_status = PaymentStatus(booking.payment_status)
    PaymentStateMachine.validate_transition(from_status, to_status)

    conditions = [
        Booking.id == booking.id,
        Booking.payment_status == from_status.value,
        Booking.status == booking.status,
    ]
    if require_confirmed:
        conditions.append(Booking.status == BookingStatus.CONFIRMED.value)

    values = {"payment_status": to_status.value}
    if booking_status is not None:
        values["status"] = booking_status.value

    result = await db.execute(
        update(Booking)
        .where(*conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(booking)
    return result.rowcount == 1
