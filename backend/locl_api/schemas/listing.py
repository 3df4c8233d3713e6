"""
Listing schemas for request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Union
from datetime import datetime
from ..enums.listing import ListingStatus
from .user import LocationSchema


class ListingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    category: Optional[str] = Field(None, max_length=100)
    images: List[str] = []
    location: Optional[LocationSchema] = None


class ListingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=100)
    images: Optional[List[str]] = None
    location: Optional[LocationSchema] = None


class ListingStatusUpdate(BaseModel):
    status: ListingStatus


class ListingResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    price: float
    category: Optional[str] = None
    images: List[str] = []
    main_image_url: Optional[str] = None
    seller_id: str
    status: ListingStatus
    location: Optional[Union[dict, str]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NearbyListingResponse(ListingResponse):
    distance: float
    distance_text: str
    distance_estimated: bool = False
    seller_name: str


class NearbyListingsResponse(BaseModel):
    items: List[NearbyListingResponse]
    status: str
    degraded: bool
    detail: Optional[str] = None
    radius_km: float
