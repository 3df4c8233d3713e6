"""
Archive model: a listing saved by a user
"""

from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class Archive(BaseModel):
    __tablename__ = "archive"
    __table_args__ = (
        UniqueConstraint("user_id", "listing_id", name="uq_archive_user_listing"),
    )

    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    user = relationship("User", backref="archive")
    listing = relationship("Listing", back_populates="archived_by")
