"""
Notification enums
"""

import enum


class NotificationType(str, enum.Enum):
    NEW_OFFER = "new_offer"
    OFFER_ACCEPTED = "offer_accepted"
    SYSTEM = "system"
