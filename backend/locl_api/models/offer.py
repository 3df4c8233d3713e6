"""
Offer model: a buyer's proposed price against a listing
"""

from sqlalchemy import Column, String, Text, Float, ForeignKey, Enum, Index, text
from sqlalchemy.orm import relationship
from .base import BaseModel
from ..enums.offer import OfferStatus


class Offer(BaseModel):
    __tablename__ = "offers"
    __table_args__ = (
        # At most one pending offer per buyer and listing
        Index(
            "uq_offers_pending_listing_buyer",
            "listing_id",
            "buyer_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    listing_id = Column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    buyer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    offer_price = Column(Float, nullable=False)
    message = Column(Text, nullable=True)

    # pending -> accepted | rejected, never back
    status = Column(
        Enum(OfferStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=OfferStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Relationships
    listing = relationship("Listing", back_populates="offers")
    buyer = relationship("User", foreign_keys=[buyer_id], backref="offers_made")
    seller = relationship("User", foreign_keys=[seller_id], backref="offers_received")
