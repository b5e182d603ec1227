from datetime import datetime
from typing import Optional

from app.schemas.common import APIModel


class NotificationResponse(APIModel):
    id: int
    type: str
    message: str
    event_id: Optional[int] = None
    read: bool
    created_at: datetime
