"""
Offer lifecycle: create an offer, accept or decline it, and open the chat on acceptance
"""

import re
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from ..core.logging import get_logger
from ..enums.listing import ListingStatus
from ..enums.offer import OfferAction, OfferStatus
from ..models.base import utcnow
from ..models.chat import Chat, Message
from ..models.listing import Listing
from ..models.offer import Offer
from .archive import save_listing
from .notifications import NotificationCenter, notify_new_offer, notify_offer_accepted

logger = get_logger(__name__)

DUPLICATE_PENDING = "You already have a pending offer on this listing"

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_uuid(value) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def _parse_price(offer_price) -> float:
    if offer_price is None or isinstance(offer_price, bool):
        raise ValidationError("Offer price is required")
    try:
        price = float(offer_price)
    except (TypeError, ValueError):
        raise ValidationError("Offer price must be a number")
    if price != price or price <= 0:
        raise ValidationError("Offer price must be greater than 0")
    return price


def pending_offer(db: Session, listing_id: str, buyer_id: str) -> Optional[Offer]:
    return db.query(Offer).filter(
        Offer.listing_id == listing_id,
        Offer.buyer_id == buyer_id,
        Offer.status == OfferStatus.PENDING,
    ).first()


def create_offer(
    db: Session,
    listing_id: str,
    buyer_id: str,
    offer_price,
    message: Optional[str] = None,
    seller_id: Optional[str] = None,
    center: NotificationCenter = None,
) -> Offer:
    """
    Create a pending offer from buyer_id against listing_id.

    Input is validated before anything is written. The seller is resolved
    from the listing when not given. Archiving the listing for the buyer
    and notifying the seller are best effort: failures are logged and do
    not fail the offer.
    """
    if not listing_id:
        raise ValidationError("listing_id is required")
    if not buyer_id:
        raise ValidationError("buyer_id is required")
    price = _parse_price(offer_price)

    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise NotFoundError("Listing not found")

    if not seller_id:
        seller_id = listing.seller_id
        if not seller_id:
            raise NotFoundError("Listing has no seller")
    if not is_uuid(seller_id):
        raise ValidationError(f"Invalid seller id: {seller_id}")
    if seller_id != listing.seller_id:
        raise ValidationError("Seller does not own this listing")
    if buyer_id == seller_id:
        raise ValidationError("Cannot make an offer on your own listing")
    if listing.status != ListingStatus.ACTIVE:
        raise InvalidStateError(f"Listing is {listing.status.value}")

    if pending_offer(db, listing_id, buyer_id):
        raise InvalidStateError(DUPLICATE_PENDING)

    offer = Offer(
        listing_id=listing_id,
        buyer_id=buyer_id,
        seller_id=seller_id,
        offer_price=price,
        message=message,
        status=OfferStatus.PENDING,
        created_by=buyer_id,
    )
    db.add(offer)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request committed its pending offer first
        db.rollback()
        if pending_offer(db, listing_id, buyer_id):
            raise InvalidStateError(DUPLICATE_PENDING)
        raise
    db.refresh(offer)
    logger.info(f"Offer {offer.id} created for listing {listing_id} by {buyer_id}")

    if not save_listing(db, buyer_id, listing_id):
        logger.warning(f"Offer {offer.id} created but listing {listing_id} was not archived for {buyer_id}")
    notify_new_offer(db, offer, listing, center=center)
    return offer


def get_or_create_chat(db: Session, listing_id: str, buyer_id: str, seller_id: str) -> Tuple[Chat, bool]:
    """
    Return the chat for (listing, buyer, seller), creating it if needed.

    The unique constraint on the triple decides races: a losing insert is
    rolled back to its savepoint and the winner's row is read instead.
    Does not commit.
    """
    query = db.query(Chat).filter(
        Chat.listing_id == listing_id,
        Chat.buyer_id == buyer_id,
        Chat.seller_id == seller_id,
    )
    chat = query.first()
    if chat:
        if not chat.is_active:
            chat.is_active = True
        return chat, False

    try:
        with db.begin_nested():
            chat = Chat(listing_id=listing_id, buyer_id=buyer_id, seller_id=seller_id, is_active=True,
                        created_by=seller_id)
            db.add(chat)
        return chat, True
    except IntegrityError:
        logger.info(f"Chat for listing {listing_id} created concurrently, reusing it")
        chat = query.first()
        if chat is None:
            raise
        return chat, False


def acceptance_message(offer: Offer) -> str:
    return f"Offer of ${offer.offer_price:.2f} has been accepted! You can now arrange a meeting."


def respond_to_offer(
    db: Session,
    offer_id: str,
    action,
    acting_user_id: Optional[str] = None,
    center: NotificationCenter = None,
) -> dict:
    """
    Accept or decline a pending offer.

    The status moves with a conditional update on status='pending', so of
    two concurrent responders only one succeeds; the other gets
    InvalidStateError and writes nothing. Accepting opens (or reuses) the
    chat and posts the acceptance message in the same transaction, then
    notifies the buyer. The posted Message is returned under "message" so
    callers can push it to open chat screens.
    """
    try:
        action = OfferAction(action)
    except ValueError:
        raise ValidationError(f"Invalid action: {action}")

    offer = db.query(Offer).filter(Offer.id == offer_id).first()
    if not offer:
        raise NotFoundError("Offer not found")
    if acting_user_id is not None and acting_user_id != offer.seller_id:
        raise PermissionDeniedError("Only the seller can respond to this offer")
    if offer.status != OfferStatus.PENDING:
        raise InvalidStateError(f"Offer is already {offer.status.value}")

    new_status = OfferStatus.ACCEPTED if action == OfferAction.ACCEPT else OfferStatus.REJECTED
    claimed = db.query(Offer).filter(
        Offer.id == offer_id,
        Offer.status == OfferStatus.PENDING,
    ).update(
        {"status": new_status, "updated_at": utcnow(), "updated_by": acting_user_id or offer.seller_id},
        synchronize_session=False,
    )
    if claimed != 1:
        db.rollback()
        db.refresh(offer)
        raise InvalidStateError(f"Offer is already {offer.status.value}")

    if action == OfferAction.DECLINE:
        db.commit()
        db.refresh(offer)
        logger.info(f"Offer {offer_id} declined")
        return {"success": True, "action": action.value, "offer_id": offer_id, "chat_id": None,
                "notification": None, "message": None}

    try:
        chat, created = get_or_create_chat(db, offer.listing_id, offer.buyer_id, offer.seller_id)
        message = Message(
            chat=chat,
            sender_id=offer.seller_id,
            content=acceptance_message(offer),
            is_read=False,
            created_at=utcnow(),
            created_by=offer.seller_id,
        )
        db.add(message)
        db.flush()
        chat.last_message_at = message.created_at
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Failed to open chat for offer {offer_id}", exc_info=True)
        raise

    db.refresh(offer)
    db.refresh(chat)
    logger.info(f"Offer {offer_id} accepted, chat {chat.id} {'created' if created else 'reused'}")

    outcome = notify_offer_accepted(db, offer, offer.listing, chat, center=center)
    return {
        "success": True,
        "action": action.value,
        "offer_id": offer_id,
        "chat_id": chat.id,
        "notification": outcome.status.value,
        "message": message,
    }


def offers_received(db: Session, seller_id: str, status: Optional[OfferStatus] = None):
    query = db.query(Offer).filter(Offer.seller_id == seller_id)
    if status:
        query = query.filter(Offer.status == status)
    return query.order_by(Offer.created_at.desc()).all()


def offers_sent(db: Session, buyer_id: str, status: Optional[OfferStatus] = None):
    query = db.query(Offer).filter(Offer.buyer_id == buyer_id)
    if status:
        query = query.filter(Offer.status == status)
    return query.order_by(Offer.created_at.desc()).all()
