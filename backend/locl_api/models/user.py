"""
User model for buyers and sellers
"""

from sqlalchemy import Column, String, Text, Boolean, JSON
from .base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)

    # {"city", "region", "country", "postcode", "address", "latitude", "longitude"}
    location = Column(JSON, nullable=True)

    # Roles and onboarding
    is_buyer = Column(Boolean, default=True, nullable=False)
    is_seller = Column(Boolean, default=False, nullable=False)
    is_onboarded = Column(Boolean, default=False, nullable=False)

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        if self.email:
            return self.email.split("@")[0]
        return "Unknown User"
