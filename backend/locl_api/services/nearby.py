"""
Nearby listings: distance-ranked, radius-filtered active listings for a viewer
"""

import random
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..core.logging import get_logger
from ..core.outcome import Outcome
from ..enums.listing import ListingStatus
from ..models.listing import Listing
from ..models.user import User
from ..utils.geo import Coordinates, distance_between, format_distance, parse_coordinates

logger = get_logger(__name__)

PLACEHOLDER_IMAGE = "https://via.placeholder.com/300x300?text=No+Image"
# Listings without coordinates get a made-up distance inside this share of the radius
ESTIMATE_SHARE = 0.8


@dataclass
class RankedListing:
    listing: Listing
    distance: float
    distance_text: str
    distance_estimated: bool

    @property
    def seller_name(self) -> str:
        return self.listing.seller.display_name if self.listing.seller else "Unknown Seller"

    @property
    def main_image_url(self) -> str:
        return self.listing.main_image_url or PLACEHOLDER_IMAGE


def _rank(listing: Listing, distance: float, estimated: bool) -> RankedListing:
    distance = round(distance, 1)
    return RankedListing(listing, distance, format_distance(distance), estimated)


def _active_listings(db: Session, viewer_id: str, newest_first: bool = False) -> List[Listing]:
    query = (
        db.query(Listing)
        .options(joinedload(Listing.seller))
        .filter(Listing.status == ListingStatus.ACTIVE, Listing.seller_id != viewer_id)
    )
    if newest_first:
        query = query.order_by(Listing.created_at.desc())
    return query.all()


def viewer_origin(db: Session, viewer_id: str) -> Optional[Coordinates]:
    """Last location saved on the viewer's profile"""
    user = db.query(User).filter(User.id == viewer_id).first()
    return parse_coordinates(user.location) if user else None


def _randomly_distanced(listings: List[Listing], max_km: float, rng) -> List[RankedListing]:
    ranked = [_rank(listing, rng.random() * max_km, True) for listing in listings]
    ranked.sort(key=lambda r: r.distance)
    return ranked


def _fallback(db: Session, viewer_id: str, rng, error: BaseException) -> Outcome[List[RankedListing]]:
    """All active listings, unfiltered, with random distances"""
    try:
        listings = _active_listings(db, viewer_id, newest_first=True)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Fallback listing read failed for {viewer_id}: {e}", exc_info=True)
        return Outcome.failed(e, value=[], detail="listings unavailable")
    ranked = _randomly_distanced(listings, settings.fallback_distance_km, rng)
    return Outcome.fallback(ranked, error=error, detail="distances unavailable, showing all listings")


def rank_nearby_listings(
    db: Session,
    viewer_id: str,
    origin: Optional[Coordinates] = None,
    radius_km: Optional[float] = None,
    rng: random.Random = None,
) -> Outcome[List[RankedListing]]:
    """
    Active listings of other sellers, nearest first.

    origin defaults to the viewer's saved location. Listings without usable
    coordinates get a random distance within 80% of the radius and are
    flagged as estimated. With radius > 0, listings farther than the radius
    are dropped. Read errors degrade to every active listing with random
    distances instead of failing.
    """
    rng = rng or random.Random()
    radius_km = settings.default_search_radius_km if radius_km is None else radius_km

    try:
        if origin is None:
            origin = viewer_origin(db, viewer_id)
        listings = _active_listings(db, viewer_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Nearby listing read failed for {viewer_id}: {e}", exc_info=True)
        return _fallback(db, viewer_id, rng, e)

    if origin is None:
        logger.info(f"No location for viewer {viewer_id}, using random distances")
        ranked = _randomly_distanced(listings, max(radius_km, 0) * ESTIMATE_SHARE, rng)
        return Outcome.fallback(ranked, detail="viewer location unknown")

    ranked = []
    for listing in listings:
        coords = parse_coordinates(listing.location)
        if coords is not None:
            ranked.append(_rank(listing, distance_between(origin, coords), False))
        else:
            ranked.append(_rank(listing, rng.random() * max(radius_km, 0) * ESTIMATE_SHARE, True))

    if radius_km > 0:
        ranked = [r for r in ranked if r.distance <= radius_km]
    ranked.sort(key=lambda r: r.distance)
    return Outcome.succeeded(ranked)
