"""
Notification delivery: persisted notification rows plus an in-process event channel
"""

import threading
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.logging import get_logger
from ..core.outcome import Outcome
from ..enums.notification import NotificationType
from ..enums.offer import OfferStatus
from ..models.base import utcnow
from ..models.chat import Chat, Message
from ..models.listing import Listing
from ..models.notification import Notification
from ..models.offer import Offer

logger = get_logger(__name__)

ALL_USERS = "*"


@dataclass
class NotificationEvent:
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    notification_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.notification_id,
            "user_id": self.user_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "created_at": self.created_at.isoformat(),
        }


class Subscription:
    def __init__(self, center: "NotificationCenter", user_id: str, ref):
        self._center = center
        self.user_id = user_id
        self._ref = ref

    def resolve(self) -> Optional[Callable[[NotificationEvent], None]]:
        return self._ref()

    def unsubscribe(self) -> None:
        self._center._remove(self)


class NotificationCenter:
    """
    Typed pub/sub channel for notification events.

    Subscribers are held weakly: a handler whose owner has been garbage
    collected is dropped on the next publish instead of being kept alive
    by the channel.
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, user_id: str, handler: Callable[[NotificationEvent], None]) -> Subscription:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            ref = weakref.WeakMethod(handler)
        else:
            ref = weakref.ref(handler)
        subscription = Subscription(self, user_id, ref)
        with self._lock:
            self._subscriptions.setdefault(user_id, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(subscription.user_id, [])
            if subscription in subs:
                subs.remove(subscription)
            if not subs:
                self._subscriptions.pop(subscription.user_id, None)

    def subscriber_count(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for s in self._subscriptions.get(user_id, []) if s.resolve() is not None)

    def publish(self, event: NotificationEvent) -> int:
        """Deliver to the user's live subscribers and wildcard ones; returns deliveries"""
        with self._lock:
            candidates = list(self._subscriptions.get(event.user_id, [])) + list(self._subscriptions.get(ALL_USERS, []))

        delivered = 0
        for subscription in candidates:
            handler = subscription.resolve()
            if handler is None:
                subscription.unsubscribe()
                continue
            try:
                handler(event)
                delivered += 1
            except Exception as e:
                logger.error(f"Notification handler failed for user {event.user_id}: {e}", exc_info=True)
        return delivered


notification_center = NotificationCenter()


def create_notification(
    db: Session,
    user_id: str,
    notification_type: NotificationType,
    title: str,
    message: str,
    payload: Optional[dict] = None,
    related_listing_id: str = None,
    related_offer_id: str = None,
    related_chat_id: str = None,
    related_user_id: str = None,
) -> Notification:
    """Create a notification in the database"""
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        payload=payload,
        related_listing_id=related_listing_id,
        related_offer_id=related_offer_id,
        related_chat_id=related_chat_id,
        related_user_id=related_user_id,
        created_by="system",
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def _deliver(db: Session, center: NotificationCenter, user_id: str, notification_type: NotificationType,
             title: str, message: str, data: dict, **related) -> Outcome[NotificationEvent]:
    event = NotificationEvent(user_id=user_id, type=notification_type, title=title, message=message, data=data)
    try:
        notification = create_notification(
            db, user_id, notification_type, title, message, payload=data, **related
        )
        event.notification_id = notification.id
        event.created_at = notification.created_at
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to store {notification_type.value} notification for {user_id}: {e}", exc_info=True)
        return Outcome.failed(e, value=event, detail="notification not stored")

    center.publish(event)
    logger.info(
        f"Notification {notification_type.value} sent to user {user_id}",
        extra={"event": notification_type.value, "user_id": user_id},
    )
    return Outcome.succeeded(event)


def notify_new_offer(db: Session, offer: Offer, listing: Listing,
                     center: NotificationCenter = None) -> Outcome[NotificationEvent]:
    center = center or notification_center
    data = {
        "offer_id": offer.id,
        "listing_id": listing.id,
        "listing_title": listing.title,
        "buyer_id": offer.buyer_id,
        "offer_price": offer.offer_price,
    }
    return _deliver(
        db, center, offer.seller_id, NotificationType.NEW_OFFER,
        "New Offer", f"New offer of ${offer.offer_price:.2f} for {listing.title}", data,
        related_listing_id=listing.id, related_offer_id=offer.id, related_user_id=offer.buyer_id,
    )


def notify_offer_accepted(db: Session, offer: Offer, listing: Listing, chat: Chat,
                          center: NotificationCenter = None) -> Outcome[NotificationEvent]:
    center = center or notification_center
    data = {
        "offer_id": offer.id,
        "listing_id": listing.id,
        "listing_title": listing.title,
        "listing_image": listing.main_image_url,
        "offer_price": offer.offer_price,
        "chat_id": chat.id,
    }
    return _deliver(
        db, center, offer.buyer_id, NotificationType.OFFER_ACCEPTED,
        "Offer Accepted", f"Your offer of ${offer.offer_price:.2f} for {listing.title} was accepted", data,
        related_listing_id=listing.id, related_offer_id=offer.id, related_chat_id=chat.id,
        related_user_id=offer.seller_id,
    )


def activity_summary(db: Session, user_id: str) -> dict:
    """Counts behind the chats-tab badge: pending offers, unread notifications and messages"""
    pending_offers = db.query(Offer).filter(
        Offer.seller_id == user_id,
        Offer.status == OfferStatus.PENDING,
    ).count()

    unread_notifications = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False,  # noqa: E712
    ).count()

    chat_ids = [
        row.id for row in db.query(Chat.id).filter(
            (Chat.buyer_id == user_id) | (Chat.seller_id == user_id)
        )
    ]
    unread_messages = 0
    if chat_ids:
        unread_messages = db.query(Message).filter(
            Message.chat_id.in_(chat_ids),
            Message.sender_id != user_id,
            Message.is_read == False,  # noqa: E712
        ).count()

    total = pending_offers + unread_notifications + unread_messages
    return {
        "count": total,
        "has_new": total > 0,
        "pending_offers": pending_offers,
        "unread_notifications": unread_notifications,
        "unread_messages": unread_messages,
    }
