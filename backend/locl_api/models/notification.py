"""
Notification model for user notifications
"""

from sqlalchemy import Column, String, ForeignKey, Text, Boolean, DateTime, Enum, JSON
from sqlalchemy.orm import relationship
from .base import BaseModel
from ..enums.notification import NotificationType


class Notification(BaseModel):
    __tablename__ = "notifications"

    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(
        Enum(NotificationType, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        default=NotificationType.SYSTEM,
    )
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Optional references, plain ids so deleting a listing keeps the history
    related_listing_id = Column(String(36), nullable=True)
    related_offer_id = Column(String(36), nullable=True)
    related_chat_id = Column(String(36), nullable=True)
    related_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    # Relationships
    user = relationship("User", foreign_keys=[user_id], backref="notifications")
    related_user = relationship("User", foreign_keys=[related_user_id])
