"""Tests for the offer lifecycle service."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query

from locl_api.core.exceptions import InvalidStateError, NotFoundError, PermissionDeniedError, ValidationError
from locl_api.database import SessionLocal
from locl_api.enums.listing import ListingStatus
from locl_api.enums.notification import NotificationType
from locl_api.enums.offer import OfferStatus
from locl_api.models.archive import Archive
from locl_api.models.base import new_id
from locl_api.models.chat import Chat, Message
from locl_api.models.notification import Notification
from locl_api.models.offer import Offer
from locl_api.services import offers as offer_service
from locl_api.services.notifications import NotificationCenter

from conftest import make_listing, make_user


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.fixture
def center():
    return NotificationCenter()


def test_create_offer_defaults_seller_and_archives(db, buyer, seller, listing, center):
    recorder = Recorder()
    center.subscribe(seller.id, recorder)

    offer = offer_service.create_offer(db, listing.id, buyer.id, "85.50", message="Cash today?", center=center)

    assert offer.status == OfferStatus.PENDING
    assert offer.seller_id == seller.id
    assert offer.offer_price == 85.5
    assert db.query(Archive).filter_by(user_id=buyer.id, listing_id=listing.id).count() == 1

    notification = db.query(Notification).filter_by(user_id=seller.id).one()
    assert notification.type == NotificationType.NEW_OFFER
    assert notification.related_offer_id == offer.id
    assert [e.data["offer_id"] for e in recorder.events] == [offer.id]


@pytest.mark.parametrize("price", [None, "", "abc", 0, -5, "0", float("nan"), True])
def test_invalid_price_writes_nothing(db, buyer, listing, price):
    with pytest.raises(ValidationError):
        offer_service.create_offer(db, listing.id, buyer.id, price)
    assert db.query(Offer).count() == 0
    assert db.query(Archive).count() == 0


def test_missing_listing(db, buyer):
    with pytest.raises(NotFoundError):
        offer_service.create_offer(db, new_id(), buyer.id, 10)


def test_malformed_seller_id(db, buyer, listing):
    with pytest.raises(ValidationError):
        offer_service.create_offer(db, listing.id, buyer.id, 10, seller_id="not-a-uuid")
    assert db.query(Offer).count() == 0


def test_seller_must_own_listing(db, buyer, listing):
    other = make_user(db, "other@example.com")
    with pytest.raises(ValidationError):
        offer_service.create_offer(db, listing.id, buyer.id, 10, seller_id=other.id)


def test_cannot_offer_on_own_listing(db, seller, listing):
    with pytest.raises(ValidationError):
        offer_service.create_offer(db, listing.id, seller.id, 10)


def test_listing_must_be_active(db, buyer, seller):
    sold = make_listing(db, seller, title="Lamp", status=ListingStatus.SOLD)
    with pytest.raises(InvalidStateError):
        offer_service.create_offer(db, sold.id, buyer.id, 10)


def test_one_pending_offer_per_buyer_and_listing(db, buyer, listing, center):
    offer_service.create_offer(db, listing.id, buyer.id, 50, center=center)
    with pytest.raises(InvalidStateError):
        offer_service.create_offer(db, listing.id, buyer.id, 60, center=center)
    assert db.query(Offer).count() == 1


def test_concurrent_duplicate_offer_is_rejected_by_index(db, buyer, listing, center, monkeypatch):
    offer_service.create_offer(db, listing.id, buyer.id, 50, center=center)

    # The second request looked before the first one committed
    real_lookup = offer_service.pending_offer
    lookups = []

    def stale_lookup(session, listing_id, buyer_id):
        lookups.append(listing_id)
        return None if len(lookups) == 1 else real_lookup(session, listing_id, buyer_id)

    monkeypatch.setattr(offer_service, "pending_offer", stale_lookup)
    with pytest.raises(InvalidStateError, match="already have a pending offer"):
        offer_service.create_offer(db, listing.id, buyer.id, 60, center=center)

    assert len(lookups) == 2
    assert db.query(Offer).filter(Offer.status == OfferStatus.PENDING).count() == 1


def test_pending_offer_index_allows_history(db, buyer, seller, listing):
    for status in (OfferStatus.REJECTED, OfferStatus.ACCEPTED, OfferStatus.PENDING):
        db.add(Offer(listing_id=listing.id, buyer_id=buyer.id, seller_id=seller.id, offer_price=10, status=status))
    db.commit()

    db.add(Offer(listing_id=listing.id, buyer_id=buyer.id, seller_id=seller.id, offer_price=20,
                 status=OfferStatus.PENDING))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_can_offer_again_after_decline(db, buyer, listing, center):
    first = offer_service.create_offer(db, listing.id, buyer.id, 50, center=center)
    offer_service.respond_to_offer(db, first.id, "decline", center=center)

    second = offer_service.create_offer(db, listing.id, buyer.id, 70, center=center)
    assert second.status == OfferStatus.PENDING
    assert db.query(Offer).count() == 2


def test_accept_opens_chat_with_system_message(db, buyer, seller, listing, center):
    recorder = Recorder()
    center.subscribe(buyer.id, recorder)
    offer = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)

    result = offer_service.respond_to_offer(db, offer.id, "accept", acting_user_id=seller.id, center=center)

    assert result["success"] is True
    assert result["notification"] == "succeeded"
    db.expire_all()
    assert db.get(Offer, offer.id).status == OfferStatus.ACCEPTED

    chat = db.get(Chat, result["chat_id"])
    assert (chat.listing_id, chat.buyer_id, chat.seller_id) == (listing.id, buyer.id, seller.id)
    messages = db.query(Message).filter_by(chat_id=chat.id).all()
    assert len(messages) == 1
    assert messages[0].sender_id == seller.id
    assert messages[0].content == "Offer of $80.00 has been accepted! You can now arrange a meeting."
    assert chat.last_message_at == messages[0].created_at
    assert result["message"].id == messages[0].id

    event = recorder.events[-1]
    assert event.type == NotificationType.OFFER_ACCEPTED
    assert event.data["chat_id"] == chat.id
    assert event.data["listing_title"] == listing.title
    assert event.data["listing_image"] == "https://cdn.example.com/bike.jpg"


def test_decline_creates_no_chat(db, buyer, listing, center):
    offer = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)

    result = offer_service.respond_to_offer(db, offer.id, "decline", center=center)

    assert result["chat_id"] is None
    db.expire_all()
    assert db.get(Offer, offer.id).status == OfferStatus.REJECTED
    assert db.query(Chat).count() == 0


def test_second_response_is_rejected(db, buyer, listing, center):
    offer = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)
    offer_service.respond_to_offer(db, offer.id, "accept", center=center)

    with pytest.raises(InvalidStateError):
        offer_service.respond_to_offer(db, offer.id, "accept", center=center)
    with pytest.raises(InvalidStateError):
        offer_service.respond_to_offer(db, offer.id, "decline", center=center)

    db.expire_all()
    assert db.get(Offer, offer.id).status == OfferStatus.ACCEPTED
    assert db.query(Chat).count() == 1
    assert db.query(Message).count() == 1


def test_only_seller_may_respond(db, buyer, listing, center):
    offer = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)
    with pytest.raises(PermissionDeniedError):
        offer_service.respond_to_offer(db, offer.id, "accept", acting_user_id=buyer.id, center=center)


def test_unknown_action_and_offer(db, buyer, listing, center):
    offer = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)
    with pytest.raises(ValidationError):
        offer_service.respond_to_offer(db, offer.id, "maybe", center=center)
    with pytest.raises(NotFoundError):
        offer_service.respond_to_offer(db, new_id(), "accept", center=center)


def test_each_buyer_gets_own_chat(db, buyer, seller, listing, center):
    other = make_user(db, "other@example.com")
    first = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)
    second = offer_service.create_offer(db, listing.id, other.id, 90, center=center)

    a = offer_service.respond_to_offer(db, first.id, "accept", center=center)
    b = offer_service.respond_to_offer(db, second.id, "accept", center=center)

    assert a["chat_id"] != b["chat_id"]
    assert db.query(Chat).count() == 2


def test_get_or_create_chat_returns_existing(db, buyer, seller, listing):
    chat, created = offer_service.get_or_create_chat(db, listing.id, buyer.id, seller.id)
    db.commit()
    again, created_again = offer_service.get_or_create_chat(db, listing.id, buyer.id, seller.id)

    assert created is True
    assert created_again is False
    assert again.id == chat.id
    assert db.query(Chat).count() == 1


def test_get_or_create_chat_reuses_row_committed_concurrently(db, buyer, seller, listing, monkeypatch):
    other = SessionLocal()
    try:
        winner = Chat(listing_id=listing.id, buyer_id=buyer.id, seller_id=seller.id, is_active=True,
                      created_by=seller.id)
        other.add(winner)
        other.commit()
        winner_id = winner.id
    finally:
        other.close()

    # First lookup misses as if it ran before the other commit
    real_first = Query.first
    calls = []

    def first_misses_once(query):
        calls.append(query)
        return None if len(calls) == 1 else real_first(query)

    monkeypatch.setattr(Query, "first", first_misses_once)
    chat, created = offer_service.get_or_create_chat(db, listing.id, buyer.id, seller.id)
    monkeypatch.undo()

    assert created is False
    assert chat.id == winner_id
    assert db.query(Chat).count() == 1


def test_offer_lists(db, buyer, seller, listing, center):
    offer = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)

    assert [o.id for o in offer_service.offers_received(db, seller.id)] == [offer.id]
    assert [o.id for o in offer_service.offers_sent(db, buyer.id)] == [offer.id]
    assert offer_service.offers_received(db, seller.id, OfferStatus.ACCEPTED) == []
    assert offer_service.offers_sent(db, seller.id) == []


def test_losing_concurrent_response_writes_nothing(db, buyer, listing, center):
    offer = offer_service.create_offer(db, listing.id, buyer.id, 80, center=center)
    assert db.get(Offer, offer.id).status == OfferStatus.PENDING

    # Another request accepts while this session still holds the pending row
    other = SessionLocal()
    try:
        offer_service.respond_to_offer(other, offer.id, "accept", center=center)
    finally:
        other.close()

    with pytest.raises(InvalidStateError):
        offer_service.respond_to_offer(db, offer.id, "decline", center=center)

    db.expire_all()
    assert db.get(Offer, offer.id).status == OfferStatus.ACCEPTED
    assert db.query(Chat).count() == 1
    assert db.query(Message).count() == 1
