"""
Notification schemas for request/response validation
"""

from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from ..enums.notification import NotificationType


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    payload: Optional[dict] = None
    is_read: bool
    read_at: Optional[datetime] = None
    related_listing_id: Optional[str] = None
    related_offer_id: Optional[str] = None
    related_chat_id: Optional[str] = None
    related_user_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ActivitySummary(BaseModel):
    count: int
    has_new: bool
    pending_offers: int
    unread_notifications: int
    unread_messages: int
