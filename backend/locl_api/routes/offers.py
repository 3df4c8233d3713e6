"""
Offer routes: make an offer, respond to one, list offers
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ..auth.dependencies import get_current_user
from ..database import get_db
from ..enums.offer import OfferStatus
from ..models.offer import Offer
from ..models.user import User
from ..schemas.offer import OfferCreate, OfferRespond, OfferRespondResult, OfferResponse
from ..services import offers as offer_service
from ..services.realtime import chat_hub, message_event

router = APIRouter()


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
def create_offer(
    offer_data: OfferCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Make an offer on a listing as the current user"""
    return offer_service.create_offer(
        db,
        listing_id=offer_data.listing_id,
        buyer_id=current_user.id,
        offer_price=offer_data.offer_price,
        message=offer_data.message,
        seller_id=offer_data.seller_id,
    )


@router.get("/received", response_model=List[OfferResponse])
def get_received_offers(
    status: Optional[OfferStatus] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return offer_service.offers_received(db, current_user.id, status)


@router.get("/sent", response_model=List[OfferResponse])
def get_sent_offers(
    status: Optional[OfferStatus] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return offer_service.offers_sent(db, current_user.id, status)


@router.get("/{offer_id}", response_model=OfferResponse)
def get_offer(
    offer_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    offer = db.query(Offer).filter(Offer.id == offer_id).first()
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    if current_user.id not in (offer.buyer_id, offer.seller_id):
        raise HTTPException(status_code=403, detail="Not authorized to view this offer")
    return offer


@router.post("/{offer_id}/respond", response_model=OfferRespondResult)
def respond_to_offer(
    offer_id: str,
    response_data: OfferRespond,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Accept or decline an offer (seller only)"""
    result = offer_service.respond_to_offer(
        db,
        offer_id,
        response_data.action,
        acting_user_id=current_user.id,
    )
    message = result.pop("message")
    if message is not None:
        chat_hub.publish(message.chat_id, message_event(message))
    return result
