"""
Booking model representing a user's ticket purchase for an event.

Key design decisions:
- total_amount is computed once at creation and never recomputed
- payment_status and status only move through guarded UPDATEs
  (see app.services.payment_state)
- booking_reference and a non-empty payment_intent_id are unique at the
  database level
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import BookingStatus, PaymentMethod, PaymentStatus, sql_in


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tickets = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_intent_id = Column(String(255), nullable=False, default="")
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.STRIPE.value)
    booking_reference = Column(String(32), nullable=False, unique=True)
    attendee_details = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)
    reminder_sent = Column(Boolean, nullable=False, default=False)

    # Relationships
    user = relationship("User", back_populates="bookings", lazy="selectin")
    event = relationship("Event", back_populates="bookings", lazy="selectin")

    __table_args__ = (
        CheckConstraint("tickets >= 1", name="check_booking_tickets_positive"),
        CheckConstraint(
            f"payment_status IN ({sql_in(PaymentStatus)})", name="check_booking_payment_status"
        ),
        CheckConstraint(
            f"payment_method IN ({sql_in(PaymentMethod)})", name="check_booking_payment_method"
        ),
        CheckConstraint(f"status IN ({sql_in(BookingStatus)})", name="check_booking_status"),
        Index("ix_bookings_reminder_scan", "event_id", "status", "payment_status", "reminder_sent"),
        # One booking per provider intent; unpaid bookings hold the empty string
        Index(
            "uq_bookings_payment_intent_id",
            "payment_intent_id",
            unique=True,
            postgresql_where=text("payment_intent_id <> ''"),
            sqlite_where=text("payment_intent_id <> ''"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, ref={self.booking_reference}, user={self.user_id}, "
            f"event={self.event_id}, status={self.status}, payment={self.payment_status})>"
        )
