"""
Event endpoints with Redis caching on list operations.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import commit_and_invalidate
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.security import require_admin
from app.db.session import get_db
from app.models.enums import EventCategory, EventStatus
from app.models.user import User
from app.schemas.common import DataResponse, MessageResponse, PageResponse
from app.schemas.event import AvailabilityResponse, EventCreate, EventResponse, EventUpdate
from app.services.cache_service import get_cached_events, set_cached_events
from app.services.event_service import (
    EventQuery,
    check_availability,
    create_event,
    delete_event,
    get_event,
    list_events,
    update_event,
)

logger = get_logger(__name__)
settings = get_settings()
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("", response_model=PageResponse[EventResponse])
async def list_events_endpoint(
    category: Optional[EventCategory] = None,
    search: Optional[str] = Query(None, max_length=100),
    featured: Optional[bool] = None,
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(
        settings.EVENTS_PAGE_LIMIT_DEFAULT, ge=1, le=settings.EVENTS_PAGE_LIMIT_MAX
    ),
    sort: str = Query("-createdAt", max_length=40),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with filters and pagination.
    Results are cached in Redis; the cache is invalidated whenever an event
    or its ticket counter changes.
    """
    query = EventQuery(
        category=category.value if category else None,
        search=search or None,
        featured=featured,
        status=status_filter.value if status_filter else None,
        page=page,
        limit=limit,
        sort=sort,
    )

    cached = await get_cached_events(query.cache_params())
    if cached:
        logger.info("events_list_cache_hit", page=page)
        return cached

    events, total, pages = await list_events(db, query)
    response = PageResponse[EventResponse](
        count=len(events),
        total=total,
        page=page,
        pages=pages,
        data=[EventResponse.model_validate(e) for e in events],
    )

    await set_cached_events(
        query.cache_params(), response.model_dump(mode="json", by_alias=True)
    )
    return response


@router.get("/{event_id}", response_model=DataResponse[EventResponse])
async def get_event_endpoint(event_id: int, db: AsyncSession = Depends(get_db)):
    """Get a single event by ID. Not cached (needs the live ticket counter)."""
    event = await get_event(db, event_id)
    return DataResponse(data=EventResponse.model_validate(event))


@router.get("/{event_id}/availability", response_model=DataResponse[AvailabilityResponse])
async def availability_endpoint(
    event_id: int,
    tickets: int = Query(1, ge=1),
    db: AsyncSession = Depends(get_db),
):
    result = await check_availability(db, event_id, tickets)
    return DataResponse(data=AvailabilityResponse(**result))


@router.post(
    "",
    response_model=DataResponse[EventResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_event_endpoint(
    event_data: EventCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await create_event(db, event_data)
    await commit_and_invalidate(db)
    return DataResponse(data=EventResponse.model_validate(event))


@router.put("/{event_id}", response_model=DataResponse[EventResponse])
async def update_event_endpoint(
    event_id: int,
    event_data: EventUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await update_event(db, event_id, event_data)
    await commit_and_invalidate(db)
    return DataResponse(data=EventResponse.model_validate(event))


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event_endpoint(
    event_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await delete_event(db, event_id)
    await commit_and_invalidate(db)
    return MessageResponse(message="Event deleted")
