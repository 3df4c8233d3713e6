"""
Profile routes: profile edits, location refresh, avatar and onboarding
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional

from ..auth.dependencies import get_current_user
from ..config import settings
from ..core.logging import get_logger
from ..core.outcome import Outcome
from ..database import get_db
from ..models.user import User
from ..schemas.user import (
    AvatarResponse,
    LocationUpdate,
    LocationUpdateResponse,
    OnboardingRequest,
    OnboardingResponse,
    PublicUserResponse,
    UploadRequest,
    UserResponse,
    UserUpdate,
)
from ..services.location import Accuracy, LocationService, ReportedPosition, location_service
from ..utils.s3_client import S3Client, decode_data_url
from ..utils.storage import get_optional_file_storage

logger = get_logger(__name__)
router = APIRouter()


def get_location_service() -> LocationService:
    return location_service


def upload_avatar(storage: Optional[S3Client], user: User, data_url: str) -> Outcome[str]:
    """Upload an avatar, falling back to the default image when storage is missing or keeps failing"""
    content, content_type = decode_data_url(data_url)
    if storage is None:
        return Outcome.fallback(settings.default_avatar_url, detail="File storage is not configured")
    return storage.upload_with_fallback(
        content,
        settings.avatars_bucket,
        settings.default_avatar_url,
        content_type=content_type,
        prefix=user.id,
    )


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserResponse)
def update_me(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Edit the current user's profile"""
    for field, value in user_update.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    current_user.updated_by = current_user.id
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/{user_id}", response_model=PublicUserResponse)
def get_user(user_id: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return PublicUserResponse(
        id=user.id,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        bio=user.bio,
        city=(user.location or {}).get("city") if isinstance(user.location, dict) else None,
    )


@router.post("/me/location", response_model=LocationUpdateResponse)
async def refresh_location(
    update: LocationUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: LocationService = Depends(get_location_service),
):
    """
    Resolve the device fix to a place and save it on the profile.

    A denied permission or missing fix leaves the saved location untouched.
    """
    provider = ReportedPosition(
        update.latitude,
        update.longitude,
        accuracy=Accuracy(update.accuracy),
        permission_granted=update.permission_granted,
    )
    location = await service.resolve(provider, cache_key=current_user.id, use_cache=update.use_cache)
    if location is None:
        return LocationUpdateResponse(location=None, saved=False)

    current_user.location = location.to_dict()
    current_user.updated_by = current_user.id
    db.commit()
    logger.info(f"Location refreshed for user {current_user.id}: {location.city}")
    return LocationUpdateResponse(location=location.to_dict(), saved=True)


@router.post("/me/avatar", response_model=AvatarResponse)
def set_avatar(
    upload: UploadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: Optional[S3Client] = Depends(get_optional_file_storage),
):
    outcome = upload_avatar(storage, current_user, upload.data_url)
    current_user.avatar_url = outcome.value
    db.commit()
    return AvatarResponse(
        avatar_url=outcome.value,
        status=outcome.status.value,
        used_fallback=outcome.used_fallback,
        detail=outcome.detail,
    )


@router.post("/me/onboarding", response_model=OnboardingResponse)
def complete_onboarding(
    data: OnboardingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: Optional[S3Client] = Depends(get_optional_file_storage),
):
    """
    Finish onboarding: roles, name and optional avatar.

    The user is marked onboarded even when the avatar fell back to the
    default image; the response says so.
    """
    outcome = None
    if data.avatar_data_url:
        outcome = upload_avatar(storage, current_user, data.avatar_data_url)
        current_user.avatar_url = outcome.value
    elif not current_user.avatar_url:
        current_user.avatar_url = settings.default_avatar_url

    if data.full_name is not None:
        current_user.full_name = data.full_name
    current_user.is_buyer = data.is_buyer
    current_user.is_seller = data.is_seller
    current_user.is_onboarded = True
    current_user.updated_by = current_user.id
    db.commit()
    db.refresh(current_user)

    if outcome is not None and outcome.used_fallback:
        logger.warning(f"User {current_user.id} onboarded with default avatar: {outcome.detail}")

    return OnboardingResponse(
        user=UserResponse.model_validate(current_user),
        avatar_status=outcome.status.value if outcome else None,
        avatar_used_fallback=bool(outcome and outcome.used_fallback),
    )
