from app.models.user import User
from app.models.event import Event
from app.models.booking import Booking
from app.models.notification import Notification

__all__ = ["User", "Event", "Booking", "Notification"]
