"""
Payment endpoints: intent creation, client verification and the provider webhook.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import commit_and_invalidate, get_payment_gateway
from app.core.security import get_current_user
from app.db.session import get_db
from app.infrastructure.payment_gateway import PaymentGateway
from app.models.user import User
from app.schemas.common import DataResponse
from app.schemas.payment import (
    CreateIntentRequest,
    PaymentIntentResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.services.payment_service import create_payment_intent, handle_webhook, verify_payment

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-intent", response_model=DataResponse[PaymentIntentResponse])
async def create_intent_endpoint(
    payload: CreateIntentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    intent = await create_payment_intent(db, gateway, payload.booking_id, user)
    return DataResponse(
        data=PaymentIntentResponse(client_secret=intent.client_secret, payment_intent_id=intent.id)
    )


@router.post("/verify", response_model=DataResponse[VerifyPaymentResponse])
async def verify_endpoint(
    payload: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Reconcile after checkout. Safe to call more than once."""
    booking = await verify_payment(db, gateway, payload.payment_intent_id, user)
    await commit_and_invalidate(db)
    return DataResponse(
        data=VerifyPaymentResponse(
            booking_id=booking.id,
            payment_status=booking.payment_status,
            booking_status=booking.status,
        )
    )


@router.post("/webhook")
async def webhook_endpoint(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Provider callback. Authenticated by signature over the raw body, not by token."""
    payload = await request.body()
    await handle_webhook(db, gateway, payload, stripe_signature)
    await commit_and_invalidate(db)
    return {"received": True}
