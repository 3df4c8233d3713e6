"""
User schemas for request/response models
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class LocationSchema(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    postcode: Optional[str] = None
    address: Optional[str] = None
    is_complete: Optional[bool] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = None
    is_buyer: Optional[bool] = None
    is_seller: Optional[bool] = None


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    display_name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[LocationSchema] = None
    is_buyer: bool
    is_seller: bool
    is_onboarded: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicUserResponse(BaseModel):
    id: str
    display_name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    city: Optional[str] = None

    class Config:
        from_attributes = True


class LocationUpdate(BaseModel):
    """A fix reported by the device"""
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    accuracy: str = Field("high", pattern="^(high|balanced)$")
    permission_granted: bool = True
    use_cache: bool = True


class LocationUpdateResponse(BaseModel):
    location: Optional[LocationSchema] = None
    saved: bool


class UploadRequest(BaseModel):
    """Base64 data URL upload, the shape image pickers hand back"""
    data_url: str = Field(..., min_length=1)


class AvatarResponse(BaseModel):
    avatar_url: str
    status: str
    used_fallback: bool
    detail: Optional[str] = None


class OnboardingRequest(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    is_buyer: bool = True
    is_seller: bool = False
    avatar_data_url: Optional[str] = None


class OnboardingResponse(BaseModel):
    user: UserResponse
    avatar_status: Optional[str] = None
    avatar_used_fallback: bool = False
