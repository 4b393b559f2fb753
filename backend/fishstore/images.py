"""
Hosted product images.

ImageHost is the interface the upload routes depend on. CloudinaryImageHost
uploads to Cloudinary with its own configuration object (no process-wide
``cloudinary.config`` call); FakeImageHost keeps uploads in memory.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict
from uuid import uuid4

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog

from fishstore.errors import UpstreamServiceFailure
from fishstore.retry import with_backoff

logger = structlog.get_logger(__name__)

# Cloudinary resize on upload: cap at 800x600, let the CDN pick quality/format
UPLOAD_TRANSFORMATION = [
    {"width": 800, "height": 600, "crop": "limit"},
    {"quality": "auto"},
    {"fetch_format": "auto"},
]


@dataclass(frozen=True)
class UploadedImage:
    url: str
    public_id: str


class ImageHost(ABC):
    @abstractmethod
    def upload(self, data: bytes, filename: str) -> UploadedImage:
        ...

    @abstractmethod
    def delete(self, public_id: str) -> Dict[str, str]:
        ...


class CloudinaryImageHost(ImageHost):
    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "fish-ecommerce/products",
        timeout: float = 60.0,
        max_attempts: int = 3,
        backoff_factor: float = 2.0,
    ):
        self.folder = folder
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_factor = backoff_factor
        self._credentials = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "secure": True,
        }

    def _call(self, description: str, func):
        try:
            return with_backoff(
                func,
                retry_on=(cloudinary.exceptions.RateLimited,),
                max_attempts=self.max_attempts,
                backoff_factor=self.backoff_factor,
                description=description,
            )
        except cloudinary.exceptions.Error as exc:
            logger.error("Cloudinary request failed", call=description, error=str(exc))
            raise UpstreamServiceFailure("image host", f"Image {description} failed") from exc

    def upload(self, data: bytes, filename: str) -> UploadedImage:
        result = self._call(
            "upload",
            lambda: cloudinary.uploader.upload(
                data,
                folder=self.folder,
                resource_type="image",
                transformation=UPLOAD_TRANSFORMATION,
                eager=[{"width": 400, "crop": "scale"}],
                eager_async=True,
                timeout=self.timeout,
                **self._credentials,
            ),
        )
        logger.info("Image uploaded", public_id=result["public_id"], filename=filename)
        return UploadedImage(url=result["secure_url"], public_id=result["public_id"])

    def delete(self, public_id: str) -> Dict[str, str]:
        result = self._call(
            "deletion",
            lambda: cloudinary.uploader.destroy(public_id, timeout=self.timeout, **self._credentials),
        )
        logger.info("Image deleted", public_id=public_id, result=result.get("result"))
        return {"result": result.get("result", "unknown")}


class FakeImageHost(ImageHost):
    """Keeps uploaded images in memory; URLs point at a fake CDN."""

    def __init__(self, base_url: str = "https://images.example.test"):
        self.base_url = base_url
        self.images: Dict[str, bytes] = {}

    def upload(self, data: bytes, filename: str) -> UploadedImage:
        public_id = f"fish-ecommerce/products/{uuid4().hex[:16]}"
        self.images[public_id] = data
        return UploadedImage(url=f"{self.base_url}/{public_id}", public_id=public_id)

    def delete(self, public_id: str) -> Dict[str, str]:
        if self.images.pop(public_id, None) is None:
            return {"result": "not found"}
        return {"result": "ok"}
