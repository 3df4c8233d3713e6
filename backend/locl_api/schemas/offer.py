"""
Offer schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, Union
from datetime import datetime
from ..enums.offer import OfferStatus, OfferAction


class OfferCreate(BaseModel):
    listing_id: str
    # Validated by the offer service so non-numeric input gets the domain error
    offer_price: Union[float, str]
    message: Optional[str] = Field(None, max_length=2000)
    seller_id: Optional[str] = None


class OfferRespond(BaseModel):
    action: OfferAction


class OfferResponse(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    offer_price: float
    message: Optional[str] = None
    status: OfferStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OfferRespondResult(BaseModel):
    success: bool
    action: OfferAction
    offer_id: str
    chat_id: Optional[str] = None
    notification: Optional[str] = None
