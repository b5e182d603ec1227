"""
Event model with ticket inventory tracking.

Key design decisions:
- `available_tickets` is the shared counter touched by payment
  reconciliation and cancellation; it is only ever changed through
  conditional UPDATEs in the booking/payment services
- CHECK constraints keep 0 <= available_tickets <= total_tickets even if a
  code path forgets the guard
- `version` is bumped on every inventory change
- Venue is flattened into columns and re-assembled by the `venue` property
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import EventCategory, EventStatus, sql_in


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(20), nullable=False)

    venue_name = Column(String(255), nullable=False)
    venue_address = Column(String(255), nullable=False)
    venue_city = Column(String(100), nullable=False)
    venue_state = Column(String(100), nullable=False)
    venue_zip_code = Column(String(20), nullable=False)

    date = Column(DateTime(timezone=True), nullable=False)
    time = Column(String(20), nullable=False)
    image = Column(String(1000), nullable=False, default="")
    total_tickets = Column(Integer, nullable=False)
    available_tickets = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    organizer = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=EventStatus.ACTIVE.value)
    tags = Column(JSON, nullable=False, default=list)
    featured = Column(Boolean, nullable=False, default=False)

    version = Column(Integer, nullable=False, default=1)

    bookings = relationship("Booking", back_populates="event", lazy="raise", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("available_tickets >= 0", name="check_available_tickets_non_negative"),
        CheckConstraint("total_tickets >= 1", name="check_total_tickets_positive"),
        CheckConstraint("available_tickets <= total_tickets", name="check_available_lte_total"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint(f"category IN ({sql_in(EventCategory)})", name="check_event_category"),
        CheckConstraint(f"status IN ({sql_in(EventStatus)})", name="check_event_status"),
        Index("ix_events_date", "date"),
        Index("ix_events_status_date", "status", "date"),
    )

    @property
    def venue(self) -> dict:
        return {
            "name": self.venue_name,
            "address": self.venue_address,
            "city": self.venue_city,
            "state": self.venue_state,
            "zip_code": self.venue_zip_code,
        }

    def apply_sold_out_rule(self) -> None:
        """An active event with nothing left to sell is sold out."""
        if self.available_tickets == 0 and self.status == EventStatus.ACTIVE.value:
            self.status = EventStatus.SOLD_OUT.value

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, available={self.available_tickets}/{self.total_tickets})>"
