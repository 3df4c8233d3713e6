"""
Chat models for conversations and messages
"""

from sqlalchemy import Column, String, ForeignKey, Text, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class Chat(BaseModel):
    __tablename__ = "chats"
    __table_args__ = (
        UniqueConstraint("listing_id", "buyer_id", "seller_id", name="uq_chats_listing_buyer_seller"),
    )

    listing_id = Column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # Last message timestamp for sorting
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    listing = relationship("Listing", back_populates="chats")
    buyer = relationship("User", foreign_keys=[buyer_id], backref="chats_as_buyer")
    seller = relationship("User", foreign_keys=[seller_id], backref="chats_as_seller")
    messages = relationship(
        "Message",
        back_populates="chat",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.created_at",
    )

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)

    def other_participant(self, user_id: str) -> str:
        return self.seller_id if user_id == self.buyer_id else self.buyer_id


class Message(BaseModel):
    __tablename__ = "messages"

    chat_id = Column(String(36), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    image_url = Column(Text, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    chat = relationship("Chat", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id], backref="sent_messages")
