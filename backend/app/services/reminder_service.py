"""
Day-before reminders for paid bookings.

Each booking is claimed with a guarded UPDATE on reminder_sent before its
notification is written, so overlapping or repeated sweeps never notify a
booking twice.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.core.metrics import reminders_sent
from app.models.booking import Booking
from app.models.enums import BookingStatus, EventStatus, NotificationType, PaymentStatus
from app.models.event import Event
from app.services.notification_service import add_notification

logger = get_logger(__name__)


def tomorrow_window(now: datetime) -> tuple[datetime, datetime]:
    """[tomorrow 00:00 UTC, day after 00:00 UTC)"""
    today = now.astimezone(timezone.utc).date()
    start = datetime.combine(today + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


async def _claim(db: AsyncSession, booking_id: int) -> bool:
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.reminder_sent.is_(False))
        .values(reminder_sent=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def send_event_reminders(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """Notify every paid, confirmed booking for an active event happening tomorrow."""
    start, end = tomorrow_window(now or datetime.now(timezone.utc))

    result = await db.execute(
        select(Booking.id, Booking.user_id, Event.id, Event.title, Event.time)
        .join(Event, Booking.event_id == Event.id)
        .where(
            Event.status == EventStatus.ACTIVE.value,
            Event.date >= start,
            Event.date < end,
            Booking.status == BookingStatus.CONFIRMED.value,
            Booking.payment_status == PaymentStatus.COMPLETED.value,
            Booking.reminder_sent.is_(False),
        )
        .order_by(Booking.id)
    )
    candidates = result.all()

    sent = 0
    for booking_id, user_id, event_id, title, event_time in candidates:
        if not await _claim(db, booking_id):
            continue
        await add_notification(
            db,
            user_id,
            NotificationType.REMINDER,
            f"Reminder: {title} is happening tomorrow at {event_time}",
            event_id=event_id,
        )
        sent += 1

    reminders_sent.inc(sent)
    logger.info(
        "reminder_sweep_completed",
        window_start=start.isoformat(),
        window_end=end.isoformat(),
        candidates=len(candidates),
        sent=sent,
    )
    return sent
