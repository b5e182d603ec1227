from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class EventCategory(str, Enum):
    CONCERT = "concert"
    CONFERENCE = "conference"
    SPORTS = "sports"
    THEATER = "theater"
    FESTIVAL = "festival"
    WORKSHOP = "workshop"
    OTHER = "other"


class EventStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    SOLD_OUT = "sold-out"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class NotificationType(str, Enum):
    BOOKING = "booking"
    REMINDER = "reminder"
    CANCELLATION = "cancellation"
    GENERAL = "general"


def sql_in(enum_cls) -> str:
    """Render an enum as the body of a SQL IN (...) check constraint."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
