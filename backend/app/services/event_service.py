"""
Event service handling catalogue CRUD and availability checks.
"""

import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.booking import Booking
from app.models.enums import BookingStatus, EventStatus
from app.models.event import Event
from app.models.notification import Notification
from app.schemas.event import EventCreate, EventUpdate

logger = get_logger(__name__)

SORTABLE_FIELDS = {
    "createdAt": Event.created_at,
    "date": Event.date,
    "price": Event.price,
    "title": Event.title,
    "availableTickets": Event.available_tickets,
}


@dataclass
class EventQuery:
    category: Optional[str] = None
    search: Optional[str] = None
    featured: Optional[bool] = None
    status: Optional[str] = None
    page: int = 1
    limit: int = 12
    sort: str = "-createdAt"

    def cache_params(self) -> dict:
        return {
            "category": self.category,
            "search": self.search,
            "featured": self.featured,
            "status": self.status,
            "page": self.page,
            "limit": self.limit,
            "sort": self.sort,
        }


def _order_by(sort: str):
    descending = sort.startswith("-")
    column = SORTABLE_FIELDS.get(sort.lstrip("-"))
    if column is None:
        raise ValidationError(
            f"Cannot sort by '{sort}'. Allowed: {', '.join(sorted(SORTABLE_FIELDS))}"
        )
    return column.desc() if descending else column.asc()


def _venue_columns(venue) -> dict:
    return {
        "venue_name": venue.name,
        "venue_address": venue.address,
        "venue_city": venue.city,
        "venue_state": venue.state,
        "venue_zip_code": venue.zip_code,
    }


async def list_events(db: AsyncSession, query: EventQuery) -> tuple[list[Event], int, int]:
    """
    List events matching the filters, one page at a time.
    Status defaults to active; search is a case-insensitive substring match
    on title, description and organizer.

    Returns (events, total, pages).
    """
    stmt = select(Event).where(Event.status == (query.status or EventStatus.ACTIVE.value))

    if query.category:
        stmt = stmt.where(Event.category == query.category)
    if query.featured:
        stmt = stmt.where(Event.featured.is_(True))
    if query.search:
        pattern = f"%{query.search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Event.title).like(pattern),
                func.lower(Event.description).like(pattern),
                func.lower(Event.organizer).like(pattern),
            )
        )

    order = _order_by(query.sort)

    count_query = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    events_query = (
        stmt.order_by(order, Event.id.desc())
        .offset((query.page - 1) * query.limit)
        .limit(query.limit)
    )
    events = list((await db.execute(events_query)).scalars().all())

    return events, total, math.ceil(total / query.limit)


async def get_event(db: AsyncSession, event_id: int) -> Event:
    """Get a single event by ID."""
    event = await db.get(Event, event_id)
    if not event:
        raise NotFoundError("Event", event_id)
    return event


async def create_event(db: AsyncSession, event_data: EventCreate) -> Event:
    """Create a new event; availability defaults to the full allocation."""
    data = event_data.model_dump(exclude={"venue", "available_tickets", "category", "status"})
    available = event_data.available_tickets
    event = Event(
        **data,
        **_venue_columns(event_data.venue),
        category=event_data.category.value,
        status=event_data.status.value,
        available_tickets=event_data.total_tickets if available is None else available,
    )
    event.apply_sold_out_rule()
    db.add(event)
    await db.flush()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, tickets=event.total_tickets)
    return event


async def update_event(db: AsyncSession, event_id: int, event_data: EventUpdate) -> Event:
    """
    Apply a partial update. The resulting row must keep
    0 <= available_tickets <= total_tickets.
    """
    event = await get_event(db, event_id)
    changes = event_data.model_dump(exclude_unset=True, exclude_none=True, exclude={"venue"})

    total = changes.get("total_tickets", event.total_tickets)
    available = changes.get("available_tickets", event.available_tickets)
    if available > total:
        raise ValidationError(
            f"availableTickets ({available}) cannot exceed totalTickets ({total})"
        )

    for field, value in changes.items():
        if field in ("category", "status"):
            value = value.value
        setattr(event, field, value)
    if event_data.venue is not None:
        for column, value in _venue_columns(event_data.venue).items():
            setattr(event, column, value)

    event.apply_sold_out_rule()
    event.version = event.version + 1
    await db.flush()
    await db.refresh(event)

    logger.info("event_updated", event_id=event.id, fields=sorted(changes))
    return event


async def delete_event(db: AsyncSession, event_id: int) -> None:
    """
    Delete an event. Refused while confirmed bookings exist; cancelled and
    refunded bookings go with it, notifications keep their text but lose the link.
    """
    event = await get_event(db, event_id)

    active_bookings = (
        await db.execute(
            select(func.count())
            .select_from(Booking)
            .where(Booking.event_id == event_id, Booking.status == BookingStatus.CONFIRMED.value)
        )
    ).scalar()
    if active_bookings:
        raise InvalidStateError(
            f"Event has {active_bookings} confirmed booking(s); cancel them before deleting"
        )

    await db.execute(
        update(Notification)
        .where(Notification.event_id == event_id)
        .values(event_id=None)
    )
    await db.execute(
        delete(Booking)
        .where(Booking.event_id == event_id)
    )
    await db.delete(event)
    await db.flush()

    logger.info("event_deleted", event_id=event_id)


async def check_availability(db: AsyncSession, event_id: int, tickets: int) -> dict:
    event = await get_event(db, event_id)
    return {
        "available": event.available_tickets >= tickets,
        "available_tickets": event.available_tickets,
        "requested_tickets": tickets,
        "event_id": event.id,
    }
