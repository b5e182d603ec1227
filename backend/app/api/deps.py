from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.payment_gateway import PaymentGateway
from app.services.cache_service import invalidate_event_cache


def get_payment_gateway(request: Request) -> PaymentGateway:
    """The gateway built in the application lifespan."""
    return request.app.state.payment_gateway


async def commit_and_invalidate(db: AsyncSession) -> None:
    """
    Commit a catalogue or inventory change, then drop cached listings.
    Invalidating first would let a concurrent listing re-cache the old
    counts for the whole TTL.
    """
    await db.commit()
    await invalidate_event_cache()
