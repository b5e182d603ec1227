"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import EmailStr, Field

from app.models.enums import PaymentMethod
from app.schemas.common import APIModel
from app.schemas.event import EventSummary
from app.schemas.user import UserSummary


class AttendeeDetail(APIModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr


class BookingCreate(APIModel):
    event_id: int
    tickets: int = Field(..., ge=1)
    attendee_details: list[AttendeeDetail] = Field(default_factory=list)
    payment_method: PaymentMethod = PaymentMethod.STRIPE


class PaymentStatusUpdate(APIModel):
    payment_status: Literal["completed", "failed"]
    payment_intent_id: Optional[str] = None


class BookingResponse(APIModel):
    id: int
    user_id: int
    event_id: int
    tickets: int
    total_amount: float
    payment_status: str
    payment_intent_id: str
    payment_method: str
    booking_reference: str
    attendee_details: list[AttendeeDetail]
    status: str
    reminder_sent: bool
    created_at: datetime
    updated_at: datetime
    event: Optional[EventSummary] = None
    user: Optional[UserSummary] = None
