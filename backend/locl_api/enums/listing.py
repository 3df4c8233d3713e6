"""
Listing enums
"""

import enum


class ListingStatus(str, enum.Enum):
    ACTIVE = "active"
    SOLD = "sold"
    ARCHIVED = "archived"
