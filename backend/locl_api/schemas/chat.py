"""
Chat schemas for request/response validation
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class MessageCreate(BaseModel):
    content: Optional[str] = Field(None, max_length=5000)
    image_url: Optional[str] = None


class MessageResponse(BaseModel):
    id: str
    chat_id: str
    sender_id: str
    content: str
    image_url: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ChatResponse(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    is_active: bool
    last_message_at: Optional[datetime] = None
    created_at: datetime
    listing_title: Optional[str] = None
    listing_image: Optional[str] = None
    other_user_id: str
    other_user_name: str
    other_user_avatar_url: Optional[str] = None
    unread_count: int = 0
    last_message: Optional[MessageResponse] = None
