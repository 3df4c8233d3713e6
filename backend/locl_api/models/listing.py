"""
Listing model for items for sale
"""

from sqlalchemy import Column, String, Text, Float, ForeignKey, JSON, Enum
from sqlalchemy.orm import relationship
from .base import BaseModel
from ..enums.listing import ListingStatus


class Listing(BaseModel):
    __tablename__ = "listings"

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    category = Column(String(100), nullable=True, index=True)

    # Ordered list of public image URLs, first one is the main image
    images = Column(JSON, nullable=False, default=list)

    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        Enum(ListingStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=ListingStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Same shape as User.location, may be stored as a JSON string by older clients
    location = Column(JSON, nullable=True)

    # Relationships
    seller = relationship("User", foreign_keys=[seller_id], backref="listings")
    offers = relationship("Offer", back_populates="listing", cascade="all, delete-orphan", passive_deletes=True)
    chats = relationship("Chat", back_populates="listing", cascade="all, delete-orphan", passive_deletes=True)
    archived_by = relationship("Archive", back_populates="listing", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def main_image_url(self):
        if isinstance(self.images, list) and self.images:
            return self.images[0]
        return None
