"""
File upload routes using S3
"""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from typing import Any, Dict

from ..auth.dependencies import get_current_user
from ..config import settings
from ..models.user import User
from ..utils.s3_client import S3Client
from ..utils.storage import get_file_storage

router = APIRouter(tags=["File Management"])

UPLOAD_BUCKETS = {
    "avatar": lambda: settings.avatars_bucket,
    "listing": lambda: settings.listings_bucket,
}


@router.post("/upload", response_model=Dict[str, Any])
async def upload_file(
    file: UploadFile = File(...),
    upload_type: str = "listing",
    current_user: User = Depends(get_current_user),
    storage: S3Client = Depends(get_file_storage),
):
    """
    Upload an image to S3

    - **file**: The image to upload
    - **upload_type**: "avatar" for profile pictures, "listing" for listing photos

    Objects are stored as {bucket}/{user_id}-{uuid}.{ext}. Returns the public URL.
    """
    if upload_type not in UPLOAD_BUCKETS:
        raise HTTPException(status_code=400, detail=f"Unknown upload type: {upload_type}")
    if not file.filename:
        raise HTTPException(status_code=400, detail="File must have a name")

    content = await file.read()
    file_url = storage.upload_bytes(
        content,
        UPLOAD_BUCKETS[upload_type](),
        filename=file.filename,
        content_type=file.content_type,
        prefix=current_user.id,
    )

    return {
        "success": True,
        "message": "File uploaded successfully",
        "data": {
            "original_filename": file.filename,
            "file_url": file_url,
            "content_type": file.content_type,
            "uploaded_by": current_user.id,
            "upload_type": upload_type,
        }
    }


@router.delete("/delete")
def delete_file(
    file_url: str,
    current_user: User = Depends(get_current_user),
    storage: S3Client = Depends(get_file_storage),
):
    """Delete one of the current user's uploads by its public URL"""
    if not file_url:
        raise HTTPException(status_code=400, detail="File URL is required")

    # Keys carry the owner id as filename prefix
    filename = file_url.rsplit("/", 1)[-1]
    if not filename.startswith(f"{current_user.id}-"):
        raise HTTPException(status_code=403, detail="You can only delete your own files")

    if not storage.delete_file(file_url):
        raise HTTPException(status_code=404, detail="File not found or already deleted")

    return {"success": True, "message": "File deleted successfully", "data": {"file_url": file_url}}
