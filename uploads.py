"""
Asset storage for uploaded images and documents, backed by Cloudinary.

store(bytes, mime_type, folder) returns the retrievable URL and provider id.
Only JPEG, PNG and PDF files up to 5 MB are accepted.
"""

import io
from typing import Dict, List, Protocol, Tuple

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

import config
from exceptions import AssetUploadError, ValidationError
from logger import get_logger

logger = get_logger(__name__)


class AssetStorage(Protocol):
    """Anything that can keep bytes and hand back a URL for them."""

    def store(self, data: bytes, mime_type: str, folder: str) -> Dict:
        ...


def check_upload(data: bytes, mime_type: str) -> None:
    if mime_type not in config.ALLOWED_UPLOAD_TYPES:
        raise ValidationError("Invalid file type")
    if not data:
        raise ValidationError("File is empty")
    if len(data) > config.MAX_UPLOAD_BYTES:
        raise ValidationError(f"File exceeds the {config.MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit")


class CloudinaryStorage:
    """AssetStorage that uploads to Cloudinary."""

    def __init__(self):
        cloudinary.config(
            cloud_name=config.CLOUDINARY_CLOUD_NAME,
            api_key=config.CLOUDINARY_API_KEY,
            api_secret=config.CLOUDINARY_API_SECRET,
            secure=True,
        )

    def store(self, data: bytes, mime_type: str, folder: str = config.DEFAULT_UPLOAD_FOLDER) -> Dict:
        check_upload(data, mime_type)
        try:
            result = cloudinary.uploader.upload(io.BytesIO(data), folder=folder, resource_type="auto")
        except cloudinary.exceptions.Error as e:
            logger.error(f"Cloudinary upload to '{folder}' failed: {e}")
            raise AssetUploadError() from e
        logger.info(f"Stored {mime_type} asset {result.get('public_id')} in '{folder}'")
        return {
            "url": result["secure_url"],
            "id": result["public_id"],
            "format": result.get("format"),
            "resource_type": result.get("resource_type"),
        }


def store_many(storage: AssetStorage, files: List[Tuple[bytes, str]],
               folder: str = config.MULTI_UPLOAD_FOLDER) -> List[Dict]:
    """Validate every file first, then store them in order."""
    if len(files) > config.MAX_UPLOAD_FILES:
        raise ValidationError(f"At most {config.MAX_UPLOAD_FILES} files can be uploaded at once")
    for data, mime_type in files:
        check_upload(data, mime_type)
    return [storage.store(data, mime_type, folder) for data, mime_type in files]


_storage = None


def get_asset_storage() -> AssetStorage:
    global _storage
    if _storage is None:
        _storage = CloudinaryStorage()
    return _storage
