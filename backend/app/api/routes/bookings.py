"""
Booking endpoints: create, list, payment status and cancellation.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import commit_and_invalidate, get_payment_gateway
from app.core.security import get_current_user, require_admin
from app.db.session import get_db
from app.infrastructure.payment_gateway import PaymentGateway
from app.models.user import User
from app.schemas.booking import BookingCreate, BookingResponse, PaymentStatusUpdate
from app.schemas.common import DataResponse, ListResponse
from app.services.booking_service import (
    cancel_booking,
    create_booking,
    get_all_bookings,
    get_booking,
    get_user_bookings,
)
from app.services.payment_service import update_payment_status

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _list(bookings) -> ListResponse[BookingResponse]:
    return ListResponse[BookingResponse](
        count=len(bookings),
        data=[BookingResponse.model_validate(b) for b in bookings],
    )


@router.post("", response_model=DataResponse[BookingResponse], status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a pending booking. Tickets are only taken off the event once
    the payment is reconciled.
    """
    booking = await create_booking(db, user, booking_data)
    return DataResponse(data=BookingResponse.model_validate(booking))


@router.get("/my-bookings", response_model=ListResponse[BookingResponse])
async def my_bookings_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _list(await get_user_bookings(db, user.id))


@router.get("", response_model=ListResponse[BookingResponse])
async def all_bookings_endpoint(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return _list(await get_all_bookings(db))


@router.get("/{booking_id}", response_model=DataResponse[BookingResponse])
async def get_booking_endpoint(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking(db, booking_id, user)
    return DataResponse(data=BookingResponse.model_validate(booking))


@router.put("/{booking_id}/payment", response_model=DataResponse[BookingResponse])
async def update_payment_endpoint(
    booking_id: int,
    payload: PaymentStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Record the outcome of a checkout; "completed" is confirmed with the provider first."""
    booking = await update_payment_status(
        db, gateway, booking_id, user, payload.payment_status, payload.payment_intent_id
    )
    await commit_and_invalidate(db)
    return DataResponse(data=BookingResponse.model_validate(booking))


@router.put("/{booking_id}/cancel", response_model=DataResponse[BookingResponse])
async def cancel_booking_endpoint(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Cancel a booking; a paid booking is refunded and its tickets released."""
    booking = await cancel_booking(db, gateway, booking_id, user)
    await commit_and_invalidate(db)
    return DataResponse(data=BookingResponse.model_validate(booking))
