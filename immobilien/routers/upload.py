from typing import Annotated, List, Optional
import asyncio
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy import func, select, update
from starlette import status

from immobilien.config import settings
from immobilien.dependencies import db_dependency, require_permission
from immobilien.exceptions import (
    APIError,
    MediaServiceError,
    NotFoundError,
    ValidationError,
)
from immobilien.models.property_images import PropertyImage
from immobilien.models.user import User
from immobilien.policy import Permission, authorize
from immobilien.schemas.image import ImageUpdate
from immobilien.services.image_service import ImageService, read_upload
from immobilien.services.listing_composer import serialize_image
from immobilien.services.property_service import PropertyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

uploader_dependency = Annotated[
    User, Depends(require_permission(Permission.UPLOAD_IMAGES))
]


def _image_or_404(db, image_id: int) -> PropertyImage:
    image = db.get(PropertyImage, image_id)
    if image is None:
        raise NotFoundError("Bild nicht gefunden")
    return image


def _next_display_order(db, property_id: int) -> int:
    current = db.execute(
        select(func.max(PropertyImage.display_order)).where(
            PropertyImage.property_id == property_id
        )
    ).scalar_one()
    return 0 if current is None else current + 1


def _has_primary(db, property_id: int) -> bool:
    return (
        db.execute(
            select(PropertyImage.id).where(
                PropertyImage.property_id == property_id,
                PropertyImage.is_primary.is_(True),
            )
        ).first()
        is not None
    )


def _demote_primary(db, property_id: int) -> None:
    db.execute(
        update(PropertyImage)
        .where(PropertyImage.property_id == property_id)
        .values(is_primary=False)
    )


@router.post("/image", status_code=status.HTTP_201_CREATED)
async def upload_image(
    db: db_dependency,
    current_user: uploader_dependency,
    image: UploadFile = File(...),
    property_id: Optional[int] = Form(None),
    title: Optional[str] = Form(None),
):
    """Upload one image; with ``property_id`` it is also attached to that listing."""
    listing = None
    if property_id is not None:
        listing = PropertyService(db).get_or_404(property_id)
        authorize(current_user, Permission.UPLOAD_IMAGES, listing)

    content = await read_upload(image)
    result = await ImageService().upload_image(content, property_id)

    response = {"message": "Bild erfolgreich hochgeladen", **result}
    if listing is not None:
        record = PropertyImage(
            property_id=listing.id,
            image_url=result["url"],
            thumbnail_url=result["thumbnail_url"],
            cloudinary_id=result["cloudinary_id"],
            title=title,
            is_primary=not _has_primary(db, listing.id),
            display_order=_next_display_order(db, listing.id),
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        response["image"] = serialize_image(record)
    return response


@router.post("/property-images", status_code=status.HTTP_201_CREATED)
async def upload_property_images(
    db: db_dependency,
    current_user: uploader_dependency,
    property_id: int = Form(...),
    images: List[UploadFile] = File(...),
):
    """Upload several images for a listing.

    Every file is validated before anything is sent to the CDN. Uploads then
    run in parallel and each success is recorded on its own; failed files are
    reported back instead of failing the whole batch.
    """
    listing = PropertyService(db).get_or_404(property_id)
    authorize(current_user, Permission.UPLOAD_IMAGES, listing)

    if len(images) > settings.MAX_FILES_PER_UPLOAD:
        raise ValidationError(
            f"Maximal {settings.MAX_FILES_PER_UPLOAD} Dateien pro Upload erlaubt"
        )
    contents = [await read_upload(upload) for upload in images]

    service = ImageService()
    results = await asyncio.gather(
        *(service.upload_image(content, property_id) for content in contents),
        return_exceptions=True,
    )

    uploaded, failed = [], []
    for upload, result in zip(images, results):
        if isinstance(result, APIError):
            failed.append({"filename": upload.filename, "error": result.message})
        elif isinstance(result, Exception):
            logger.error(
                "Unexpected error uploading %s", upload.filename, exc_info=result
            )
            failed.append(
                {"filename": upload.filename, "error": MediaServiceError.message}
            )
        elif isinstance(result, BaseException):
            raise result
        else:
            uploaded.append(result)

    if not uploaded:
        raise MediaServiceError("Keines der Bilder konnte hochgeladen werden")

    order = _next_display_order(db, property_id)
    needs_primary = not _has_primary(db, property_id)
    records = []
    for index, result in enumerate(uploaded):
        record = PropertyImage(
            property_id=property_id,
            image_url=result["url"],
            thumbnail_url=result["thumbnail_url"],
            cloudinary_id=result["cloudinary_id"],
            is_primary=needs_primary and index == 0,
            display_order=order + index,
        )
        db.add(record)
        records.append(record)
    db.commit()
    for record in records:
        db.refresh(record)

    if failed:
        logger.warning(
            "%s of %s uploads failed for property %s",
            len(failed),
            len(images),
            property_id,
        )
    return {
        "message": f"{len(records)} Bilder erfolgreich hochgeladen",
        "images": [serialize_image(record) for record in records],
        "failed": failed,
    }


@router.patch("/image/{image_id}", status_code=status.HTTP_200_OK)
def update_image(
    image_id: int,
    db: db_dependency,
    current_user: uploader_dependency,
    body: ImageUpdate,
):
    image = _image_or_404(db, image_id)
    authorize(current_user, Permission.UPLOAD_IMAGES, image)

    changes = body.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("Keine gültigen Felder zum Aktualisieren")
    if changes.get("is_primary"):
        _demote_primary(db, image.property_id)
    for key, value in changes.items():
        setattr(image, key, value)
    db.commit()
    db.refresh(image)
    return {"message": "Bild erfolgreich aktualisiert", "image": serialize_image(image)}


@router.delete("/image/{image_id}", status_code=status.HTTP_200_OK)
async def delete_image(image_id: int, db: db_dependency, current_user: uploader_dependency):
    image = _image_or_404(db, image_id)
    authorize(current_user, Permission.UPLOAD_IMAGES, image)

    if image.cloudinary_id:
        await ImageService().delete_image(image.cloudinary_id)
    property_id, was_primary = image.property_id, image.is_primary
    db.delete(image)
    db.flush()
    if was_primary:
        # Promote the next image in display order
        successor = db.execute(
            select(PropertyImage)
            .where(PropertyImage.property_id == property_id)
            .order_by(PropertyImage.display_order, PropertyImage.id)
            .limit(1)
        ).scalar_one_or_none()
        if successor is not None:
            successor.is_primary = True
    db.commit()
    return {"message": "Bild erfolgreich gelöscht"}
