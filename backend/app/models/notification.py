"""
Per-user notification, keyed by its own id.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from app.db.base import Base, utcnow
from app.models.enums import NotificationType, sql_in


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False, default=NotificationType.GENERAL.value)
    message = Column(String(500), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    user = relationship("User", back_populates="notifications", lazy="raise")

    __table_args__ = (
        CheckConstraint(f"type IN ({sql_in(NotificationType)})", name="check_notification_type"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type}, read={self.read})>"
