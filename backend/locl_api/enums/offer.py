"""
Offer enums
"""

import enum


class OfferStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class OfferAction(str, enum.Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
