"""
Saved ("archived") listings per user
"""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundError
from ..core.logging import get_logger
from ..models.archive import Archive
from ..models.listing import Listing

logger = get_logger(__name__)


def save_listing(db: Session, user_id: str, listing_id: str) -> bool:
    """Save a listing to the user's archive; returns False if it could not be stored"""
    try:
        if db.query(Archive).filter(Archive.user_id == user_id, Archive.listing_id == listing_id).first():
            return True
        db.add(Archive(user_id=user_id, listing_id=listing_id, created_by=user_id))
        db.commit()
        return True
    except IntegrityError:
        # Saved concurrently by another request
        db.rollback()
        return True
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Could not archive listing {listing_id} for {user_id}: {e}", exc_info=True)
        return False


def remove_listing(db: Session, user_id: str, listing_id: str) -> None:
    deleted = db.query(Archive).filter(
        Archive.user_id == user_id,
        Archive.listing_id == listing_id,
    ).delete(synchronize_session=False)
    db.commit()
    if not deleted:
        raise NotFoundError("Listing is not in your archive")


def saved_listings(db: Session, user_id: str):
    return (
        db.query(Listing)
        .join(Archive, Archive.listing_id == Listing.id)
        .filter(Archive.user_id == user_id)
        .order_by(Archive.created_at.desc())
        .all()
    )
