from app.schemas.common import DataResponse, ListResponse, PageResponse, MessageResponse
from app.schemas.user import UserCreate, UserResponse, UserLogin, AuthPayload
from app.schemas.event import EventCreate, EventUpdate, EventResponse, AvailabilityResponse
from app.schemas.booking import BookingCreate, BookingResponse, PaymentStatusUpdate
from app.schemas.payment import (
    CreateIntentRequest,
    PaymentIntentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.schemas.notification import NotificationResponse

__all__ = [
    "DataResponse", "ListResponse", "PageResponse", "MessageResponse",
    "UserCreate", "UserResponse", "UserLogin", "AuthPayload",
    "EventCreate", "EventUpdate", "EventResponse", "AvailabilityResponse",
    "BookingCreate", "BookingResponse", "PaymentStatusUpdate",
    "CreateIntentRequest", "PaymentIntentResponse", "VerifyPaymentRequest", "VerifyPaymentResponse",
    "NotificationResponse",
]
