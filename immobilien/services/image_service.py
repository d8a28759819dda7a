from io import BytesIO
from typing import Optional
import logging

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from immobilien.config import settings
from immobilien.exceptions import MediaServiceError, ValidationError

logger = logging.getLogger(__name__)

UPLOAD_TRANSFORMATION = [
    {"width": 1200, "height": 800, "crop": "limit", "quality": "auto:good"},
    {"fetch_format": "auto"},
]
THUMBNAIL_TRANSFORMATION = {"width": 400, "height": 300, "crop": "fill"}


async def read_upload(file: UploadFile) -> bytes:
    """Read an upload after checking its declared type and actual size."""
    if file.content_type not in settings.ALLOWED_FILE_TYPES:
        raise ValidationError(
            "Ungültiger Dateityp. Erlaubt sind: "
            + ", ".join(settings.ALLOWED_FILE_TYPES)
        )
    content = await file.read(settings.MAX_FILE_SIZE + 1)
    if len(content) > settings.MAX_FILE_SIZE:
        raise ValidationError(
            f"Datei {file.filename} ist zu groß (max. "
            f"{settings.MAX_FILE_SIZE // (1024 * 1024)} MB)"
        )
    if not content:
        raise ValidationError(f"Datei {file.filename} ist leer")
    return content


class ImageService:
    def __init__(self):
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )

    def folder_for(self, property_id: Optional[int] = None) -> str:
        if property_id is None:
            return settings.CLOUDINARY_FOLDER
        return f"{settings.CLOUDINARY_FOLDER}/property-{property_id}"

    async def upload_image(
        self, content: bytes, property_id: Optional[int] = None
    ) -> dict:
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                BytesIO(content),
                folder=self.folder_for(property_id),
                transformation=UPLOAD_TRANSFORMATION,
            )
        except CloudinaryError as exc:
            logger.error("Cloudinary upload failed: %s", exc, exc_info=True)
            raise MediaServiceError(detail=str(exc))

        return {
            "url": result["secure_url"],
            "thumbnail_url": self.get_image_url(
                result["public_id"], THUMBNAIL_TRANSFORMATION
            ),
            "cloudinary_id": result["public_id"],
            "width": result.get("width"),
            "height": result.get("height"),
            "format": result.get("format"),
            "size": result.get("bytes"),
        }

    async def delete_image(self, public_id: str):
        try:
            await run_in_threadpool(cloudinary.uploader.destroy, public_id)
        except CloudinaryError as exc:
            logger.error("Cloudinary delete failed for %s", public_id, exc_info=True)
            raise MediaServiceError("Bild konnte nicht gelöscht werden", detail=str(exc))

    def get_image_url(self, public_id: str, transformations: dict = None):
        return cloudinary.CloudinaryImage(public_id).build_url(
            transformation=transformations, secure=True
        )
