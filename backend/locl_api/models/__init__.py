from .base import Base, BaseModel
from .user import User
from .listing import Listing
from .offer import Offer
from .chat import Chat, Message
from .archive import Archive
from .notification import Notification

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "Listing",
    "Offer",
    "Chat",
    "Message",
    "Archive",
    "Notification",
]
