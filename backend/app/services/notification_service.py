"""
Notification service: append, list and manage per-user notifications.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.core.logging import get_logger
from app.models.enums import NotificationType
from app.models.notification import Notification

logger = get_logger(__name__)


async def add_notification(
    db: AsyncSession,
    user_id: int,
    type: NotificationType,
    message: str,
    event_id: Optional[int] = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type.value,
        message=message,
        event_id=event_id,
    )
    db.add(notification)
    await db.flush()
    logger.info("notification_added", user_id=user_id, type=type.value, event_id=event_id)
    return notification


async def list_notifications(db: AsyncSession, user_id: int) -> list[Notification]:
    """Newest first."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    )
    return list(result.scalars().all())


async def _get_owned(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    notification = await db.get(Notification, notification_id)
    # Another user's notification is indistinguishable from a missing one
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification", notification_id)
    return notification


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    notification = await _get_owned(db, user_id, notification_id)
    notification.read = True
    await db.flush()
    return notification


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
        .values(read=True)
    )
    logger.info("notifications_marked_read", user_id=user_id, count=result.rowcount)
    return result.rowcount


async def delete_notification(db: AsyncSession, user_id: int, notification_id: int) -> None:
    notification = await _get_owned(db, user_id, notification_id)
    await db.delete(notification)
    await db.flush()
