"""Image upload to the hosted image service (signed-in users)."""

import os

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool

from fishstore import models, schemas
from fishstore.deps import get_current_user, get_image_host
from fishstore.errors import ValidationFailed
from fishstore.images import ImageHost

router = APIRouter(prefix="/api/upload", tags=["upload"])

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}


def _invalid(message: str) -> ValidationFailed:
    return ValidationFailed(message, errors=[{"field": "image", "message": message}])


@router.post("/image", response_model=schemas.ImageUploaded)
async def upload_image(
    image: UploadFile = File(...),
    image_host: ImageHost = Depends(get_image_host),
    user: models.User = Depends(get_current_user),
):
    extension = os.path.splitext(image.filename or "")[1].lower()
    if extension not in ALLOWED_EXTENSIONS or (image.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise _invalid("Only image files (JPEG, JPG, PNG, GIF) are allowed")

    data = await image.read(MAX_IMAGE_BYTES + 1)
    if not data:
        raise _invalid("No image file provided")
    if len(data) > MAX_IMAGE_BYTES:
        raise _invalid("Image must be 5MB or smaller")

    # The image host SDK blocks; keep it off the event loop
    uploaded = await run_in_threadpool(image_host.upload, data, image.filename or "image")
    return {
        "message": "Image uploaded successfully",
        "image": {"url": uploaded.url, "public_id": uploaded.public_id},
    }


@router.delete("/image/{public_id:path}", response_model=schemas.ImageDeleted)
def delete_image(
    public_id: str,
    image_host: ImageHost = Depends(get_image_host),
    user: models.User = Depends(get_current_user),
):
    result = image_host.delete(public_id)
    return {"message": "Image deleted successfully", "result": result["result"]}
