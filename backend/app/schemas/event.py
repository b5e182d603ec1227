"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator, model_validator

from app.models.enums import EventCategory, EventStatus
from app.schemas.common import APIModel


class Venue(APIModel):
    name: str = Field(..., min_length=1, max_length=255)
    address: str = Field(..., min_length=1, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)


class EventCreate(APIModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: EventCategory
    venue: Venue
    date: datetime
    time: str = Field(..., min_length=1, max_length=20)
    image: str = Field("", max_length=1000)
    total_tickets: int = Field(..., ge=1)
    available_tickets: Optional[int] = Field(None, ge=0)
    price: float = Field(..., ge=0)
    organizer: str = Field(..., min_length=1, max_length=255)
    status: EventStatus = EventStatus.ACTIVE
    tags: list[str] = Field(default_factory=list)
    featured: bool = False

    @model_validator(mode="after")
    def check_inventory(self):
        if self.available_tickets is not None and self.available_tickets > self.total_tickets:
            raise ValueError("availableTickets cannot exceed totalTickets")
        return self


class EventUpdate(APIModel):
    """Partial update; the inventory invariant is checked against the stored row."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[EventCategory] = None
    venue: Optional[Venue] = None
    date: Optional[datetime] = None
    time: Optional[str] = Field(None, min_length=1, max_length=20)
    image: Optional[str] = Field(None, max_length=1000)
    total_tickets: Optional[int] = Field(None, ge=1)
    available_tickets: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    organizer: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[EventStatus] = None
    tags: Optional[list[str]] = None
    featured: Optional[bool] = None

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value):
        # Omit a field to leave it unchanged; every stored column is NOT NULL
        if value is None:
            raise ValueError("may not be null")
        return value


class EventSummary(APIModel):
    id: int
    title: str
    date: datetime
    time: str
    venue: Venue
    price: float
    status: str
    image: str


class EventResponse(EventSummary):
    description: str
    category: str
    total_tickets: int
    available_tickets: int
    organizer: str
    tags: list[str]
    featured: bool
    created_at: datetime
    updated_at: datetime


class AvailabilityResponse(APIModel):
    available: bool
    available_tickets: int
    requested_tickets: int
    event_id: int
