"""
Notification endpoints, always scoped to the authenticated user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import get_current_user
from app.db.session import get_db
from app.models.user import User
from app.schemas.common import DataResponse, ListResponse, MessageResponse
from app.schemas.notification import NotificationResponse
from app.services.notification_service import (
    delete_notification,
    list_notifications,
    mark_all_as_read,
    mark_as_read,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=ListResponse[NotificationResponse])
async def list_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notifications = await list_notifications(db, user.id)
    return ListResponse[NotificationResponse](
        count=len(notifications),
        data=[NotificationResponse.model_validate(n) for n in notifications],
    )


# Declared before /{notification_id}/read so "read-all" is not parsed as an id
@router.put("/read-all", response_model=MessageResponse)
async def read_all_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await mark_all_as_read(db, user.id)
    return MessageResponse(message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=DataResponse[NotificationResponse])
async def read_endpoint(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await mark_as_read(db, user.id, notification_id)
    return DataResponse(data=NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_endpoint(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_notification(db, user.id, notification_id)
    return MessageResponse(message="Notification deleted")
