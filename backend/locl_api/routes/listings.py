"""
Listing routes: CRUD, images, saved listings and nearby ranking
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ..auth.dependencies import get_current_user
from ..config import settings
from ..core.logging import get_logger
from ..core.outcome import OutcomeStatus
from ..database import get_db
from ..enums.listing import ListingStatus
from ..models.listing import Listing
from ..models.user import User
from ..schemas.listing import (
    ListingCreate,
    ListingResponse,
    ListingStatusUpdate,
    ListingUpdate,
    NearbyListingResponse,
    NearbyListingsResponse,
)
from ..schemas.user import UploadRequest
from ..services import archive as archive_service
from ..services.nearby import rank_nearby_listings
from ..utils.geo import Coordinates
from ..utils.s3_client import S3Client, decode_data_url
from ..utils.storage import get_file_storage

logger = get_logger(__name__)
router = APIRouter()


def get_owned_listing(db: Session, listing_id: str, user: User) -> Listing:
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    if listing.seller_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized to modify this listing"
        )
    return listing


@router.post("/listings", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
def create_listing(
    listing_data: ListingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a new listing owned by the current user"""
    data = listing_data.model_dump()
    location = listing_data.location.model_dump(exclude_none=True) if listing_data.location else current_user.location
    listing = Listing(
        title=data["title"],
        description=data["description"],
        price=data["price"],
        category=data["category"],
        images=data["images"] or [],
        location=location,
        seller_id=current_user.id,
        status=ListingStatus.ACTIVE,
        created_by=current_user.id,
    )
    db.add(listing)
    if not current_user.is_seller:
        current_user.is_seller = True
    db.commit()
    db.refresh(listing)
    logger.info(f"Listing {listing.id} created by {current_user.id}")
    return listing


@router.get("/listings/nearby", response_model=NearbyListingsResponse)
def get_nearby_listings(
    radius_km: Optional[float] = Query(None, ge=0),
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Active listings from other sellers, nearest first.

    latitude/longitude are the device's current fix; without them the
    saved profile location is used.
    """
    radius = settings.default_search_radius_km if radius_km is None else radius_km
    origin = Coordinates(latitude, longitude) if latitude is not None and longitude is not None else None
    outcome = rank_nearby_listings(db, current_user.id, origin=origin, radius_km=radius)

    items = []
    for ranked in outcome.value or []:
        base = ListingResponse.model_validate(ranked.listing).model_dump()
        base["main_image_url"] = ranked.main_image_url
        items.append(NearbyListingResponse(
            **base,
            distance=ranked.distance,
            distance_text=ranked.distance_text,
            distance_estimated=ranked.distance_estimated,
            seller_name=ranked.seller_name,
        ))

    return NearbyListingsResponse(
        items=items,
        status=outcome.status.value,
        degraded=outcome.status != OutcomeStatus.SUCCEEDED,
        detail=outcome.detail,
        radius_km=radius,
    )


@router.get("/listings/mine", response_model=List[ListingResponse])
def get_my_listings(
    status: Optional[ListingStatus] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = db.query(Listing).filter(Listing.seller_id == current_user.id)
    if status:
        query = query.filter(Listing.status == status)
    return query.order_by(Listing.created_at.desc()).all()


@router.get("/listings/{listing_id}", response_model=ListingResponse)
def get_listing(listing_id: str, db: Session = Depends(get_db)):
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    return listing


@router.put("/listings/{listing_id}", response_model=ListingResponse)
def update_listing(
    listing_id: str,
    listing_update: ListingUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update a listing (owner only)"""
    listing = get_owned_listing(db, listing_id, current_user)
    for field, value in listing_update.model_dump(exclude_unset=True).items():
        setattr(listing, field, value)
    listing.updated_by = current_user.id
    db.commit()
    db.refresh(listing)
    return listing


@router.put("/listings/{listing_id}/status", response_model=ListingResponse)
def update_listing_status(
    listing_id: str,
    status_update: ListingStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    listing = get_owned_listing(db, listing_id, current_user)
    listing.status = status_update.status
    listing.updated_by = current_user.id
    db.commit()
    db.refresh(listing)
    return listing


@router.delete("/listings/{listing_id}")
def delete_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a listing together with its offers, chats and saves"""
    listing = get_owned_listing(db, listing_id, current_user)
    db.delete(listing)
    db.commit()
    logger.info(f"Listing {listing_id} deleted by {current_user.id}")
    return {"message": "Listing deleted"}


@router.post("/listings/{listing_id}/images", response_model=ListingResponse)
def add_listing_image(
    listing_id: str,
    upload: UploadRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: S3Client = Depends(get_file_storage),
):
    """Upload an image and append it to the listing; storage failures are surfaced"""
    listing = get_owned_listing(db, listing_id, current_user)
    content, content_type = decode_data_url(upload.data_url)
    url = storage.upload_bytes(content, settings.listings_bucket, content_type=content_type, prefix=current_user.id)
    listing.images = list(listing.images or []) + [url]
    listing.updated_by = current_user.id
    db.commit()
    db.refresh(listing)
    return listing


@router.post("/listings/{listing_id}/archive")
def save_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    listing = db.query(Listing).filter(Listing.id == listing_id).first()
    if not listing:
        raise HTTPException(status_code=404, detail="Listing not found")
    if not archive_service.save_listing(db, current_user.id, listing_id):
        raise HTTPException(status_code=500, detail="Failed to save listing")
    return {"message": "Listing saved", "listing_id": listing_id}


@router.delete("/listings/{listing_id}/archive")
def unsave_listing(
    listing_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    archive_service.remove_listing(db, current_user.id, listing_id)
    return {"message": "Listing removed from archive", "listing_id": listing_id}


@router.get("/archive", response_model=List[ListingResponse])
def get_archive(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return archive_service.saved_listings(db, current_user.id)
